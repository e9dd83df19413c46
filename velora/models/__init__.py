"""Database models for user accounts, conversations and messages."""

from velora.models.conversation import Base, Conversation
from velora.models.message import Message
from velora.models.user import User

__all__ = ["Base", "Conversation", "Message", "User"]
