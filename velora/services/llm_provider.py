"""
Client for the OpenAI-compatible completion endpoint (OpenRouter by default).

Only streaming chat completions are used: the provider turns a message
history into an async iterator of text fragments.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from velora.core.config import Settings

logger = logging.getLogger("velora.provider")


class CompletionProvider:
    """Streams chat completions from a hosted model."""

    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionProvider | None":
        """Build a provider, or return None when no API key is configured."""
        if not settings.OPENAI_API_KEY:
            logger.warning("OPENAI_API_KEY not configured - chat endpoint disabled")
            return None

        client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
            max_retries=0,
        )
        return cls(client, settings.OPENAI_MODEL)

    async def open_stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        """
        Send the request and return the reply as it arrives.

        The request itself is made here, so connection and provider errors
        surface from this call rather than from the first iteration.
        """
        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            stream=True,
        )
        return self._fragments(stream)

    @staticmethod
    async def _fragments(stream) -> AsyncIterator[str]:
        async for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content

    async def close(self) -> None:
        await self.client.close()
