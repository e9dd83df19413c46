"""
Request-scoped access to the application's shared services.

Everything is created once by ``create_app`` (see ``velora.main``) and lives on
``app.state``; handlers only ever reach it through these dependencies, which
tests replace via ``app.dependency_overrides``.
"""

from fastapi import Depends, HTTPException, Request, status

from velora.core.config import Settings
from velora.services.auth_service import AuthService
from velora.services.chat_relay import ChatRelay, ReplyTasks
from velora.services.conversation_store import ConversationStore
from velora.services.llm_provider import CompletionProvider


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_conversation_store(request: Request) -> ConversationStore:
    return request.app.state.conversation_store


def get_completion_provider(request: Request) -> CompletionProvider | None:
    return request.app.state.completion_provider


def get_reply_tasks(request: Request) -> ReplyTasks:
    return request.app.state.reply_tasks


def get_chat_relay(
    provider: CompletionProvider | None = Depends(get_completion_provider),
    store: ConversationStore = Depends(get_conversation_store),
    settings: Settings = Depends(get_settings),
    reply_tasks: ReplyTasks = Depends(get_reply_tasks),
) -> ChatRelay:
    """Relay bound to the configured provider."""
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat provider not configured",
        )
    return ChatRelay(provider, store, settings, reply_tasks)
