"""Pydantic request/response models for the SkillGate API."""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(..., alias="conversationId")
    message: str

    @field_validator("conversation_id", "message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(..., alias="conversationId")
    content: str


class ReconnectResponse(BaseModel):
    server: Optional[str] = None
    success: bool
    results: Dict[str, bool] = Field(default_factory=dict)
