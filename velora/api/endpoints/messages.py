from fastapi import APIRouter, Depends, Path

from velora.api.deps import get_conversation_store
from velora.core.exceptions import ConversationNotFoundError
from velora.core.security import UserContext, require_authenticated_user
from velora.schemas.conversation import MessageOut, StatusMessage
from velora.services.conversation_store import ConversationStore

router = APIRouter()


@router.get("/{conversation_id}", response_model=list[MessageOut])
async def list_messages(
    conversation_id: str = Path(..., description="Conversation ID"),
    user_ctx: UserContext = Depends(require_authenticated_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> list[MessageOut]:
    """Messages of an owned conversation, oldest first."""
    messages = await store.list_messages(conversation_id, user_ctx.user_id)
    if messages is None:
        raise ConversationNotFoundError()
    return [MessageOut.model_validate(m) for m in messages]


@router.delete("/{conversation_id}", response_model=StatusMessage)
async def clear_messages(
    conversation_id: str = Path(..., description="Conversation ID"),
    user_ctx: UserContext = Depends(require_authenticated_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> StatusMessage:
    """Delete every message of an owned conversation. The conversation itself is kept."""
    if not await store.clear_messages(conversation_id, user_ctx.user_id):
        raise ConversationNotFoundError()
    return StatusMessage(message="Messages cleared")
