"""
Chat API endpoint.

Streams the model's reply as plain text. Authentication is optional: a valid
bearer token together with an owned conversation id turns on persistence and
title derivation, anything else is handled in guest mode.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from velora.api.deps import get_chat_relay, get_settings
from velora.core.config import Settings
from velora.core.security import UserContext, get_current_user
from velora.schemas.chat import ChatRequest
from velora.services.chat_relay import ChatRelay

router = APIRouter()


@router.post("")
@router.post("/{conversation_id}")
async def chat(
    request: ChatRequest,
    conversation_id: str | None = None,
    user_ctx: UserContext = Depends(get_current_user),
    relay: ChatRelay = Depends(get_chat_relay),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """
    Relay a chat history to the model and stream the reply.

    **Request Body:**
    ```json
    {
        "messages": [
            {"role": "user", "content": "Hello!"}
        ]
    }
    ```

    The response body is `text/plain`, written fragment by fragment as the
    provider produces them. Returns 500 if the provider cannot be reached.
    """
    request.check_limits(settings)

    stream = await relay.open(request.as_dicts(), user_ctx, conversation_id)

    return StreamingResponse(
        stream.fragments(),
        media_type="text/plain; charset=utf-8",
        headers={"X-Accel-Buffering": "no"},
    )
