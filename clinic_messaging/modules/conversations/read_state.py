import logging
import uuid
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from clinic_messaging.core.security import Role
from clinic_messaging.modules.conversations.repository import MessageRepository
from clinic_messaging.modules.conversations.rules import INBOUND_RULES, ConversationScope

logger = logging.getLogger(__name__)

def _now() -> datetime:
    return datetime.now(timezone.utc)

class ReadTracker:
    def __init__(self, session: AsyncSession):
        self.messages = MessageRepository(session)

    async def mark_read(self, conversation_id: uuid.UUID, role: Role) -> int:
        """Bulk-marks the viewer's inbound messages; a repeat call finds nothing left and returns 0."""
        count = await self.messages.mark_read(conversation_id, INBOUND_RULES[role], _now())
        logger.info(f"Marked {count} message(s) read in conversation {conversation_id} for {role.value}")
        return count

    async def unread_count(self, scope: ConversationScope, role: Role) -> int:
        if scope.empty:
            return 0
        return await self.messages.count_unread(scope, INBOUND_RULES[role])

    async def unread_by_conversation(self, conversation_ids: list[uuid.UUID], role: Role) -> dict[uuid.UUID, int]:
        return await self.messages.count_unread_by_conversation(conversation_ids, INBOUND_RULES[role])
