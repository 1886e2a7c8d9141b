from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatMessage(BaseModel):
    # Clients send extra fields (id, createdAt, parts); keep them for history.
    model_config = ConfigDict(extra="allow")

    role: Literal["system", "user", "assistant", "data", "tool"]
    content: str = ""


class AttachmentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    url: str
    content_type: str = Field(alias="contentType")


class ChatRequest(BaseModel):
    messages: list[ChatMessage]
    attachments: list[AttachmentIn] = Field(default_factory=list)

    @field_validator("messages")
    @classmethod
    def _non_empty(cls, value: list[ChatMessage]) -> list[ChatMessage]:
        if not value:
            raise ValueError("messages must not be empty")
        return value


class ChatSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    messages: list[dict[str, Any]]
    started_at: datetime = Field(serialization_alias="startedAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")


class ChatHistoryOut(BaseModel):
    history: list[ChatSessionOut]
