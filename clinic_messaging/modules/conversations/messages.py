import logging
import uuid
from datetime import datetime, timezone
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from clinic_messaging.core.paging import page_offset
from clinic_messaging.modules.conversations.models import Conversation, Message, SenderType
from clinic_messaging.modules.conversations.preview import ConversationPreviewMaintainer
from clinic_messaging.modules.conversations.repository import ConversationRepository, MessageRepository

logger = logging.getLogger(__name__)

def _now() -> datetime:
    return datetime.now(timezone.utc)

class MessageStore:
    """
    Append-only message log of a conversation.

    Callers run the access guard and request-shape validation first; the store
    only persists and keeps the conversation preview current. Nothing is
    committed here so that a message and its preview land in one transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.messages = MessageRepository(session)
        self.convos = ConversationRepository(session)
        self.previews = ConversationPreviewMaintainer(session)

    async def append(self, conversation: Conversation, sender_id: uuid.UUID, sender_type: SenderType, content: str | None, image_url: str | None = None) -> Message:
        # the counter bump locks the conversation row, so timestamps are taken after it
        seq = await self.convos.next_seq(conversation.id)
        msg = await self.messages.create(
            conversation.clinic_id,
            conversation_id=conversation.id,
            seq=seq,
            sender_id=sender_id,
            sender_type=sender_type.value,
            content=(content or "").strip(),
            image_url=image_url or None,
            created_at=_now(),
        )
        self.previews.on_append(conversation, msg)
        await self.session.flush()
        logger.info(f"Appended message {msg.id} (#{seq}) from {sender_type.value} to conversation {conversation.id}")
        return msg

    async def list(self, conversation_id: uuid.UUID, page: int = 1, limit: int = 50, before: datetime | None = None) -> tuple[Sequence[Message], int]:
        items = await self.messages.list_for_conversation(conversation_id, limit=limit, offset=page_offset(page, limit), before=before)
        total = await self.messages.count_for_conversation(conversation_id, before=before)
        return items, total

    async def delete(self, conversation: Conversation, message: Message) -> Message:
        await self.messages.delete(message)
        await self.previews.on_delete(conversation)
        await self.session.flush()
        logger.info(f"Deleted message {message.id} from conversation {conversation.id}")
        return message
