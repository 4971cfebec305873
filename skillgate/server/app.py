"""FastAPI app creation, global state and error handlers."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Security
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader

from ..app import SkillGate
from ..errors import ToolServerUnavailableError

logger = logging.getLogger(__name__)

_config_path = os.getenv("SKILLGATE_CONFIG", "config.yaml")

_app: Optional[SkillGate] = None

_API_KEY = os.getenv("SKILLGATE_API_KEY")
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _try_load_app():
    """Attempt to load SkillGate from config. Logs and stays unconfigured on failure."""
    global _app
    try:
        if os.path.exists(_config_path):
            _app = SkillGate(_config_path)
            logger.info(f"SkillGate loaded from {_config_path}")
        else:
            logger.warning(f"Config not found: {_config_path}")
    except Exception as e:
        logger.warning(f"Failed to load config: {e}")
        _app = None


def require_app() -> SkillGate:
    """Raise 503 if app is not configured. Lazy-loads on first call."""
    if _app is None:
        _try_load_app()
    if _app is None:
        raise HTTPException(503, f"Not configured: {_config_path} could not be loaded")
    return _app


def set_app(new_app: Optional[SkillGate]):
    """Replace the global SkillGate instance (tests, embedding applications)."""
    global _app
    _app = new_app


async def verify_api_key(api_key_header_value: Optional[str] = Security(_api_key_header)):
    """Require X-API-Key when SKILLGATE_API_KEY is set; open in dev mode."""
    if _API_KEY is None:
        return None
    if api_key_header_value == _API_KEY:
        return api_key_header_value
    raise HTTPException(401, "Invalid or missing API key")


@asynccontextmanager
async def _lifespan(api: FastAPI):
    yield
    if _app is not None:
        await _app.shutdown()


def _create_api() -> FastAPI:
    """Create and configure the FastAPI app with routes."""
    _api = FastAPI(title="SkillGate", version="0.1.0", lifespan=_lifespan)

    if _API_KEY is None:
        logger.warning(
            "SKILLGATE_API_KEY is not set. API endpoints are unauthenticated."
        )

    @_api.exception_handler(ToolServerUnavailableError)
    async def _tool_servers_down(request: Request, exc: ToolServerUnavailableError):
        return JSONResponse(status_code=503, content={"error": str(exc)})

    @_api.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(exc) or type(exc).__name__})

    from .routes import router
    _api.include_router(router)
    return _api


api = _create_api()
