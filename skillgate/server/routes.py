"""Agent routes: chat, streaming chat, tools, skills, health and reconnect."""

import json
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from .app import require_app, verify_api_key
from .models import ChatRequest, ChatResponse, ReconnectResponse

router = APIRouter(prefix="/api/agent")


@router.post("/chat", response_model=ChatResponse, dependencies=[Depends(verify_api_key)])
async def chat(req: ChatRequest):
    app = require_app()
    content = await app.chat(req.conversation_id, req.message)
    return ChatResponse(conversation_id=req.conversation_id, content=content)


@router.post("/chat/stream", dependencies=[Depends(verify_api_key)])
async def chat_stream(req: ChatRequest):
    app = require_app()

    async def event_generator():
        async for event in app.handle_turn(req.conversation_id, req.message):
            yield f"data: {json.dumps(event.to_dict(), ensure_ascii=False)}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/tools", dependencies=[Depends(verify_api_key)])
async def tools():
    return await require_app().list_available_tools()


@router.get("/skills", dependencies=[Depends(verify_api_key)])
async def skills():
    return await require_app().list_skills()


@router.get("/health")
async def health():
    return {"status": "UP"}


@router.post("/reconnect", response_model=ReconnectResponse, dependencies=[Depends(verify_api_key)])
async def reconnect(server: Optional[str] = None):
    results = await require_app().reconnect(server)
    return ReconnectResponse(server=server, success=all(results.values()), results=results)
