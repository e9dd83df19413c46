"""Pydantic schemas for conversation and message endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConversationOut(BaseModel):
    """A conversation as returned to its owner."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    title: str
    created_at: datetime
    updated_at: datetime


class RenameConversationRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title must not be blank")
        return v


class MessageOut(BaseModel):
    """A persisted chat turn."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: str
    role: str
    content: str
    created_at: datetime


class StatusMessage(BaseModel):
    """Generic acknowledgement."""

    message: str
