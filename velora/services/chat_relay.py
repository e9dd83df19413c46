"""
Chat relay: forwards a message history to the completion provider and
passes the reply back fragment by fragment.

Guests and signed-in users share a single code path. The relay persists the
exchange only when the caller holds a valid token *and* names a conversation
they own; in every other case it is a pure pass-through.

The provider stream is read by a background task that feeds a queue; the
response body only drains that queue. A client that goes away therefore does
not stop the reply from being read to the end and stored.

Lifecycle of one reply::

    idle -> awaiting-first-fragment -> streaming -> completed
                     |                     |
                     +------> failed <-----+
"""

import asyncio
import enum
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from velora.core.config import Settings
from velora.core.exceptions import UpstreamError
from velora.core.security import UserContext
from velora.services.conversation_store import ConversationStore
from velora.services.llm_provider import CompletionProvider
from velora.services.titles import derive_title, first_user_content

logger = logging.getLogger("velora.chat")

# Marks the end of a reply in the fragment queue
_END_OF_REPLY = object()


class RelayState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_FIRST_FRAGMENT = "awaiting-first-fragment"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ReplyAccumulator:
    """Collects the fragments already forwarded so the full reply can be stored."""

    parts: list[str] = field(default_factory=list)

    def add(self, fragment: str) -> None:
        self.parts.append(fragment)

    @property
    def fragment_count(self) -> int:
        return len(self.parts)

    @property
    def text(self) -> str:
        return "".join(self.parts)


@dataclass
class PersistenceTarget:
    """An owned conversation the exchange is written to."""

    conversation_id: str
    owner_id: str
    title: str


class ReplyTasks:
    """
    Background tasks reading provider replies.

    Holds a strong reference to every running task, logs failures, and lets
    the application wait for in-flight replies on shutdown.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Reply task failed", exc_info=task.exception())

    async def wait(self, timeout: float | None = None) -> None:
        """Wait for running replies; cancel whatever is left after ``timeout``."""
        if not self._tasks:
            return

        logger.info("Waiting for %d in-flight replies", len(self._tasks))
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d replies still running at shutdown", len(pending))


class RelayStream:
    """
    One in-flight reply.

    ``ChatRelay.open`` starts it; iterate ``fragments()`` to forward the reply.
    """

    def __init__(
        self,
        store: ConversationStore,
        history: list[dict[str, Any]],
        target: PersistenceTarget | None,
        default_title: str,
        error_text: str,
    ):
        self._store = store
        self._history = history
        self.target = target
        self._default_title = default_title
        self._error_text = error_text
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self.accumulator = ReplyAccumulator()
        self.state = RelayState.IDLE

    @property
    def persists(self) -> bool:
        return self.target is not None

    async def start(
        self,
        provider: CompletionProvider,
        messages: list[dict[str, Any]],
        reply_tasks: ReplyTasks,
    ) -> None:
        """
        Send the request upstream and start reading the reply in the background.

        Raises:
            UpstreamError: If the provider cannot be reached or rejects the request.
        """
        self.state = RelayState.AWAITING_FIRST_FRAGMENT
        try:
            upstream = await provider.open_stream(messages)
        except Exception as e:
            self.state = RelayState.FAILED
            logger.error("Completion request failed: %s", e)
            raise UpstreamError() from e

        self._task = asyncio.create_task(self._consume(upstream))
        reply_tasks.track(self._task)

    async def _consume(self, upstream: AsyncIterator[str]) -> None:
        try:
            async for fragment in upstream:
                if self.state is RelayState.AWAITING_FIRST_FRAGMENT:
                    self.state = RelayState.STREAMING
                self.accumulator.add(fragment)
                self._queue.put_nowait(fragment)
        except Exception:
            self.state = RelayState.FAILED
            logger.exception("Completion stream failed after %d fragments", self.accumulator.fragment_count)
            if self._error_text:
                self._queue.put_nowait(self._error_text)
        else:
            self.state = RelayState.COMPLETED
            if self.target is not None:
                await self._persist_reply(self.target)
        finally:
            self._queue.put_nowait(_END_OF_REPLY)

    async def fragments(self) -> AsyncIterator[str]:
        """
        Yield provider fragments unmodified and in arrival order.

        A provider failure mid-reply ends the sequence with the configured
        error notice; nothing is stored for the assistant in that case.
        Closing this iterator early leaves the reply being read and stored.
        """
        if self._task is None:
            raise RuntimeError("Relay stream not started")

        while True:
            fragment = await self._queue.get()
            if fragment is _END_OF_REPLY:
                return
            yield fragment

    async def wait(self) -> None:
        """Wait until the provider's reply has been read and stored."""
        if self._task is not None:
            await self._task

    async def _persist_reply(self, target: PersistenceTarget) -> None:
        try:
            await self._store.add_message(target.conversation_id, "assistant", self.accumulator.text)
        except Exception:
            logger.exception("Failed to save assistant reply for conversation %s", target.conversation_id)
            return

        if target.title == self._default_title:
            await self._update_title(target)

        try:
            await self._store.touch(target.conversation_id)
        except Exception:
            logger.exception("Failed to update timestamp of conversation %s", target.conversation_id)

    async def _update_title(self, target: PersistenceTarget) -> None:
        try:
            source = first_user_content(self._history)
            title = derive_title(source) if source else None
            if title:
                await self._store.set_title(target.conversation_id, title)
                target.title = title
                logger.info("Title updated for conversation %s: %s", target.conversation_id, title)
        except Exception:
            logger.exception("Title derivation failed for conversation %s", target.conversation_id)


def latest_user_content(messages: list[dict[str, Any]]) -> str | None:
    """Content of the last message with role ``user``."""
    for message in reversed(messages):
        if message.get("role") == "user":
            return message.get("content")
    return None


class ChatRelay:
    """Opens relay streams for chat requests."""

    def __init__(
        self,
        provider: CompletionProvider,
        store: ConversationStore,
        settings: Settings,
        reply_tasks: ReplyTasks | None = None,
    ):
        self.provider = provider
        self.store = store
        self.reply_tasks = reply_tasks if reply_tasks is not None else ReplyTasks()
        self.system_prompt = settings.CHAT_SYSTEM_PROMPT
        self.default_title = settings.DEFAULT_CONVERSATION_TITLE
        self.error_text = settings.CHAT_STREAM_ERROR_TEXT

    async def open(
        self,
        messages: list[dict[str, Any]],
        user_ctx: UserContext,
        conversation_id: str | None = None,
    ) -> RelayStream:
        """
        Start a reply for ``messages``.

        When the exchange is persisted, the latest user message is saved
        before the provider is called.

        Raises:
            UpstreamError: If the provider cannot be reached or rejects the request.
        """
        target = await self._resolve_target(user_ctx, conversation_id)

        user_turn = latest_user_content(messages)
        if target is not None and user_turn is not None:
            await self.store.add_message(target.conversation_id, "user", user_turn)

        stream = RelayStream(
            store=self.store,
            history=messages,
            target=target,
            default_title=self.default_title,
            error_text=self.error_text,
        )
        await stream.start(self.provider, self._with_system_prompt(messages), self.reply_tasks)
        return stream

    async def _resolve_target(self, user_ctx: UserContext, conversation_id: str | None) -> PersistenceTarget | None:
        """Return where to persist the exchange, or None for guest mode."""
        if not user_ctx.is_authenticated or not conversation_id or not self.store.is_available:
            return None

        conversation = await self.store.get_conversation(conversation_id, user_ctx.user_id)
        if conversation is None:
            logger.info("Conversation %s not owned by %s - not persisting", conversation_id, user_ctx.user_id)
            return None

        return PersistenceTarget(
            conversation_id=conversation.id,
            owner_id=conversation.owner_id,
            title=conversation.title,
        )

    def _with_system_prompt(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if self.system_prompt and not any(m.get("role") == "system" for m in messages):
            return [{"role": "system", "content": self.system_prompt}, *messages]
        return messages
