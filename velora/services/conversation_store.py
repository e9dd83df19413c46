"""
Owner-scoped storage for conversations and their messages.

Every read or write that a user can trigger takes the requesting user's id
and filters on it, so a conversation owned by someone else behaves exactly
like one that does not exist.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, select, update

from velora.core.exceptions import StorageUnavailableError
from velora.models import Conversation, Message
from velora.services.database import Database

logger = logging.getLogger("velora.conversations")


class ConversationStore:
    """CRUD operations over conversations and messages."""

    def __init__(self, database: Database, default_title: str = "New Chat"):
        self.database = database
        self.default_title = default_title

    @property
    def is_available(self) -> bool:
        return self.database.is_available

    def _require_database(self) -> None:
        if not self.database.is_available:
            raise StorageUnavailableError()

    # =========================================================================
    # Conversations
    # =========================================================================

    async def create_conversation(self, owner_id: str, title: str | None = None) -> Conversation:
        """Create a conversation, titled with the placeholder unless given a title."""
        self._require_database()

        conversation = Conversation(owner_id=owner_id, title=title or self.default_title)
        async with self.database.session() as session:
            session.add(conversation)
            await session.commit()
            await session.refresh(conversation)

        logger.info("Created conversation %s for user %s", conversation.id, owner_id)
        return conversation

    async def list_conversations(self, owner_id: str) -> list[Conversation]:
        """Conversations of a user, most recently updated first."""
        self._require_database()

        async with self.database.session() as session:
            result = await session.execute(
                select(Conversation)
                .where(Conversation.owner_id == owner_id)
                .order_by(Conversation.updated_at.desc(), Conversation.created_at.desc())
            )
            return list(result.scalars().all())

    async def get_conversation(self, conversation_id: str, owner_id: str) -> Conversation | None:
        """Return the conversation if it exists and belongs to ``owner_id``."""
        self._require_database()

        async with self.database.session() as session:
            result = await session.execute(
                select(Conversation).where(
                    Conversation.id == conversation_id,
                    Conversation.owner_id == owner_id,
                )
            )
            return result.scalar_one_or_none()

    async def rename_conversation(self, conversation_id: str, owner_id: str, title: str) -> Conversation | None:
        """
        Change a conversation's title.

        Returns:
            The updated conversation, or None if it is not owned by ``owner_id``.
        """
        self._require_database()

        async with self.database.session() as session:
            result = await session.execute(
                select(Conversation).where(
                    Conversation.id == conversation_id,
                    Conversation.owner_id == owner_id,
                )
            )
            conversation = result.scalar_one_or_none()
            if conversation is None:
                return None

            conversation.title = title
            conversation.updated_at = datetime.now(UTC)
            await session.commit()
            await session.refresh(conversation)
            return conversation

    async def delete_conversation(self, conversation_id: str, owner_id: str) -> bool:
        """
        Delete a conversation together with all of its messages.

        Returns:
            True if deleted, False if not owned by ``owner_id``.
        """
        self._require_database()

        async with self.database.session() as session:
            result = await session.execute(
                select(Conversation).where(
                    Conversation.id == conversation_id,
                    Conversation.owner_id == owner_id,
                )
            )
            conversation = result.scalar_one_or_none()
            if conversation is None:
                return False

            await session.execute(delete(Message).where(Message.conversation_id == conversation_id))
            await session.delete(conversation)
            await session.commit()

        logger.info("Deleted conversation %s", conversation_id)
        return True

    async def set_title(self, conversation_id: str, title: str) -> None:
        self._require_database()

        async with self.database.session() as session:
            await session.execute(update(Conversation).where(Conversation.id == conversation_id).values(title=title))
            await session.commit()

    async def touch(self, conversation_id: str) -> None:
        """Bump ``updated_at`` so the conversation sorts first."""
        self._require_database()

        async with self.database.session() as session:
            await session.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(updated_at=datetime.now(UTC))
            )
            await session.commit()

    # =========================================================================
    # Messages
    # =========================================================================

    async def add_message(self, conversation_id: str, role: str, content: str) -> Message:
        self._require_database()

        message = Message(conversation_id=conversation_id, role=role, content=content)
        async with self.database.session() as session:
            session.add(message)
            await session.commit()
            await session.refresh(message)
        return message

    async def list_messages(self, conversation_id: str, owner_id: str) -> list[Message] | None:
        """
        Messages of an owned conversation in chronological order.

        Returns:
            The messages, or None if the conversation is not owned by ``owner_id``.
        """
        if await self.get_conversation(conversation_id, owner_id) is None:
            return None

        async with self.database.session() as session:
            result = await session.execute(
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
            )
            return list(result.scalars().all())

    async def clear_messages(self, conversation_id: str, owner_id: str) -> bool:
        """
        Delete every message of an owned conversation. There is no undo.

        Returns:
            True if cleared, False if the conversation is not owned by ``owner_id``.
        """
        if await self.get_conversation(conversation_id, owner_id) is None:
            return False

        async with self.database.session() as session:
            result = await session.execute(delete(Message).where(Message.conversation_id == conversation_id))
            await session.commit()

        logger.info("Cleared %d messages from conversation %s", result.rowcount, conversation_id)
        return True
