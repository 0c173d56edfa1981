from sqlalchemy.ext.asyncio import AsyncSession
from clinic_messaging.core.config import settings
from clinic_messaging.modules.conversations.models import Conversation, Message
from clinic_messaging.modules.conversations.repository import MessageRepository

def preview_text(message: Message) -> str | None:
    if message.image_url:
        return settings.CHAT_IMAGE_PLACEHOLDER
    return (message.content or "")[:settings.CHAT_PREVIEW_LENGTH] or None

class ConversationPreviewMaintainer:
    """Keeps the denormalized last-message fields in step with the message log."""

    def __init__(self, session: AsyncSession):
        self.messages = MessageRepository(session)

    def on_append(self, conversation: Conversation, message: Message) -> None:
        conversation.last_message_at = message.created_at
        conversation.last_message_text = preview_text(message)

    async def on_delete(self, conversation: Conversation) -> None:
        latest = await self.messages.latest(conversation.id)
        if latest is None:
            conversation.last_message_at = None
            conversation.last_message_text = None
            return
        conversation.last_message_at = latest.created_at
        conversation.last_message_text = preview_text(latest)
