"""
SkillGate HTTP server (FastAPI)

Usage:
    SKILLGATE_CONFIG=examples/config.yaml python -m skillgate.server.main
"""

from .app import api, require_app, set_app

__all__ = ["api", "require_app", "set_app"]
