from fastapi import APIRouter

from velora.api.endpoints import auth, chat, conversations, messages

api_router = APIRouter()
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(conversations.router, prefix="/conversations", tags=["conversations"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(chat.router, prefix="/chat", tags=["chat"])
