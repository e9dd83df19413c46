"""
Pydantic schemas for the chat relay endpoint.

Size limits that depend on configuration are checked by ``check_limits``
once the settings of the running application are known.
"""

from typing import Literal

from fastapi import HTTPException, status
from pydantic import BaseModel, Field, field_validator

from velora.core.config import Settings


class ChatMessage(BaseModel):
    """A single turn of the history sent by the browser."""

    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """
    Chat history to forward to the completion provider.

    The last entry is the user turn being sent; it is the one persisted as
    the user message when the request is tied to an owned conversation.
    """

    messages: list[ChatMessage] = Field(..., min_length=1)

    @field_validator("messages")
    @classmethod
    def ends_with_user_turn(cls, v: list[ChatMessage]) -> list[ChatMessage]:
        if v and v[-1].role != "user":
            raise ValueError("The last message must have role 'user'")
        return v

    def check_limits(self, settings: Settings) -> None:
        """
        Enforce the configured input size limits.

        Raises:
            HTTPException: 400 if the history or a message is too large.
        """
        if len(self.messages) > settings.MAX_MESSAGES_PER_REQUEST:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Too many messages ({len(self.messages)}). Maximum is {settings.MAX_MESSAGES_PER_REQUEST}",
            )
        for message in self.messages:
            if len(message.content) > settings.MAX_MESSAGE_LENGTH:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Message content exceeds maximum length of {settings.MAX_MESSAGE_LENGTH} characters",
                )

    def as_dicts(self) -> list[dict[str, str]]:
        return [m.model_dump() for m in self.messages]
