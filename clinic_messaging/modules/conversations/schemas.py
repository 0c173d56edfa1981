import re
import uuid
from datetime import datetime
from pydantic import BaseModel, Field, AliasChoices, field_validator, model_validator
from clinic_messaging.core.config import settings
from clinic_messaging.core.paging import PageMeta

IMAGE_PATH_RE = re.compile(r"^/uploads/chat/[a-zA-Z0-9\-_.]+\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)

# Messages
class MessageSend(BaseModel):
    # without conversation_id a conversation is found or opened
    conversation_id: uuid.UUID | None = None
    patient_id: uuid.UUID | None = None
    staff_member_id: uuid.UUID | None = Field(default=None, validation_alias=AliasChoices("staff_member_id", "user_id"))
    content: str = Field(default="", max_length=settings.CHAT_MAX_CONTENT_LENGTH)
    image_url: str | None = None

    @field_validator("content", mode="before")
    @classmethod
    def _trim_content(cls, v):
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("image_url")
    @classmethod
    def _check_image_path(cls, v: str | None):
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not IMAGE_PATH_RE.match(v):
            raise ValueError("Invalid image path")
        return v

    @model_validator(mode="after")
    def _text_or_image(self):
        if not self.content and not self.image_url:
            raise ValueError("Message must contain text or an image")
        return self

class MessageOut(BaseModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    clinic_id: uuid.UUID
    sender_id: uuid.UUID
    sender_type: str
    content: str
    image_url: str | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True

class MessagePage(BaseModel):
    messages: list[MessageOut]
    meta: PageMeta

# Conversations
class ConversationOut(BaseModel):
    id: uuid.UUID
    clinic_id: uuid.UUID
    patient_id: uuid.UUID
    staff_member_id: uuid.UUID | None
    kind: str
    last_message_at: datetime | None
    last_message_text: str | None
    created_at: datetime | None = None

    class Config:
        from_attributes = True

class ConversationSummary(ConversationOut):
    patient_name: str | None = None
    staff_member_name: str | None = None
    unread_count: int = 0

class ConversationPage(BaseModel):
    conversations: list[ConversationSummary]
    meta: PageMeta

# Results
class SendResult(BaseModel):
    message: MessageOut
    conversation: ConversationOut

class ReadResult(BaseModel):
    conversation_id: uuid.UUID
    read_count: int

class UnreadCountOut(BaseModel):
    unread_count: int

class DeleteResult(BaseModel):
    message: MessageOut
