from fastapi import APIRouter
from clinic_messaging.modules.conversations.router import router as chat_router

api_router = APIRouter()
api_router.include_router(chat_router, prefix="/chat", tags=["chat"])
# chat_router carries /conversations, /messages and /unread-count

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
