"""
Conversation API endpoints.

All routes require a bearer token and only ever touch conversations owned by
the caller; someone else's conversation answers 404.
"""

from fastapi import APIRouter, Depends, Path

from velora.api.deps import get_conversation_store
from velora.core.exceptions import ConversationNotFoundError
from velora.core.security import UserContext, require_authenticated_user
from velora.schemas.conversation import ConversationOut, RenameConversationRequest, StatusMessage
from velora.services.conversation_store import ConversationStore

router = APIRouter()


@router.post("", response_model=ConversationOut)
async def create_conversation(
    user_ctx: UserContext = Depends(require_authenticated_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationOut:
    """Create an empty conversation titled with the placeholder."""
    conversation = await store.create_conversation(owner_id=user_ctx.user_id)
    return ConversationOut.model_validate(conversation)


@router.get("", response_model=list[ConversationOut])
async def list_conversations(
    user_ctx: UserContext = Depends(require_authenticated_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> list[ConversationOut]:
    """List the caller's conversations, most recently updated first."""
    conversations = await store.list_conversations(owner_id=user_ctx.user_id)
    return [ConversationOut.model_validate(c) for c in conversations]


@router.put("/{conversation_id}", response_model=ConversationOut)
async def rename_conversation(
    request: RenameConversationRequest,
    conversation_id: str = Path(..., description="Conversation ID"),
    user_ctx: UserContext = Depends(require_authenticated_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationOut:
    """
    Rename a conversation.

    **Request Body:**
    ```json
    {"title": "Shipping question"}
    ```
    """
    conversation = await store.rename_conversation(conversation_id, user_ctx.user_id, request.title)
    if conversation is None:
        raise ConversationNotFoundError()
    return ConversationOut.model_validate(conversation)


@router.delete("/{conversation_id}", response_model=StatusMessage)
async def delete_conversation(
    conversation_id: str = Path(..., description="Conversation ID"),
    user_ctx: UserContext = Depends(require_authenticated_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> StatusMessage:
    """Delete a conversation and every message in it."""
    if not await store.delete_conversation(conversation_id, user_ctx.user_id):
        raise ConversationNotFoundError()
    return StatusMessage(message="Conversation deleted")
