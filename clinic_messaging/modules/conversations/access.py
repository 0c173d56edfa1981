import logging
import uuid

from clinic_messaging.core.errors import AccessDeniedError, NotFoundError
from clinic_messaging.core.security import Principal
from clinic_messaging.modules.conversations.models import Conversation, Message
from clinic_messaging.modules.conversations.rules import conversation_scope

logger = logging.getLogger(__name__)

def can_access(principal: Principal, conversation: Conversation, patient_id: uuid.UUID | None = None) -> bool:
    return conversation_scope(principal, patient_id).admits(conversation)

def ensure_conversation_access(principal: Principal, conversation: Conversation | None, patient_id: uuid.UUID | None = None) -> Conversation:
    if conversation is None:
        raise NotFoundError("CONVERSATION_NOT_FOUND", "Conversation not found")
    if not can_access(principal, conversation, patient_id):
        logger.warning(f"Access denied: {principal.role.value} {principal.user_id} on conversation {conversation.id}")
        raise AccessDeniedError()
    return conversation

def ensure_can_delete(principal: Principal, message: Message | None, conversation: Conversation | None, patient_id: uuid.UUID | None = None) -> Message:
    if message is None:
        raise NotFoundError("MESSAGE_NOT_FOUND", "Message not found")
    ensure_conversation_access(principal, conversation, patient_id)
    # seeing the thread does not grant deleting someone else's message
    if message.sender_id != principal.user_id:
        logger.warning(f"Delete denied: {principal.user_id} is not the sender of message {message.id}")
        raise AccessDeniedError("Only the sender can delete a message")
    return message
