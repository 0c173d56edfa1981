import uuid
from datetime import datetime
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from clinic_messaging.core.config import settings
from clinic_messaging.core.db import get_session
from clinic_messaging.core.security import get_principal, Principal
from clinic_messaging.modules.conversations.schemas import (
    ConversationOut, ConversationPage, ConversationSummary,
    MessageOut, MessagePage, MessageSend,
    SendResult, ReadResult, UnreadCountOut, DeleteResult,
)
from clinic_messaging.modules.conversations.service import ChatService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> ChatService:
    return ChatService(session)

PageQ = Query(1, ge=1)
LimitQ = Query(settings.CHAT_PAGE_SIZE, ge=1, le=settings.CHAT_MAX_PAGE_SIZE)

# Conversations
@router.get("/conversations", response_model=ConversationPage)
async def list_conversations(
    page: int = PageQ, limit: int = LimitQ,
    principal: Principal = Depends(get_principal),
    service: ChatService = Depends(svc),
):
    return await service.list_conversations(principal, page, limit)

@router.get("/conversations/{conversation_id}", response_model=ConversationSummary)
async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: ChatService = Depends(svc),
):
    return await service.get_conversation(principal, conversation_id)

@router.post("/conversations/{conversation_id}/read", response_model=ReadResult)
async def mark_read(
    conversation_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: ChatService = Depends(svc),
):
    count = await service.mark_read(principal, conversation_id)
    return ReadResult(conversation_id=conversation_id, read_count=count)

@router.get("/unread-count", response_model=UnreadCountOut)
async def unread_count(
    principal: Principal = Depends(get_principal),
    service: ChatService = Depends(svc),
):
    return UnreadCountOut(unread_count=await service.unread_count(principal))

# Messages
@router.get("/messages/{conversation_id}", response_model=MessagePage)
async def list_messages(
    conversation_id: uuid.UUID,
    page: int = PageQ, limit: int = LimitQ,
    before: datetime | None = None,
    principal: Principal = Depends(get_principal),
    service: ChatService = Depends(svc),
):
    return await service.list_messages(principal, conversation_id, page, limit, before)

@router.post("/messages", response_model=SendResult, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageSend,
    principal: Principal = Depends(get_principal),
    service: ChatService = Depends(svc),
):
    msg, conv = await service.send_message(principal, payload)
    return SendResult(message=MessageOut.model_validate(msg), conversation=ConversationOut.model_validate(conv))

@router.delete("/messages/{message_id}", response_model=DeleteResult)
async def delete_message(
    message_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: ChatService = Depends(svc),
):
    msg = await service.delete_message(principal, message_id)
    return DeleteResult(message=MessageOut.model_validate(msg))
