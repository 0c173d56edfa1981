import enum
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, Integer, Text, TIMESTAMP, Index, UniqueConstraint, text
from clinic_messaging.core.base import Base, TimestampedTenantMixin

class SenderType(str, enum.Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    CLINIC = "clinic"

class ConversationKind(str, enum.Enum):
    PATIENT_DOCTOR = "patient_doctor"
    PATIENT_CLINIC = "patient_clinic"

class Conversation(Base, TimestampedTenantMixin):
    __table_args__ = (
        # one thread per (clinic, patient, staff member); a null staff member is its own key
        Index(
            "uq_conversation_assigned", "clinic_id", "patient_id", "staff_member_id", unique=True,
            postgresql_where=text("staff_member_id IS NOT NULL"),
            sqlite_where=text("staff_member_id IS NOT NULL"),
        ),
        Index(
            "uq_conversation_clinic_inbox", "clinic_id", "patient_id", unique=True,
            postgresql_where=text("staff_member_id IS NULL"),
            sqlite_where=text("staff_member_id IS NULL"),
        ),
    )

    patient_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("patient.id"), index=True)
    staff_member_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("account.id"), nullable=True)
    kind: Mapped[str] = mapped_column(String(16))  # patient_doctor, patient_clinic
    last_message_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    last_message_text: Mapped[str | None] = mapped_column(String(200), nullable=True)
    # per-conversation append counter; orders messages sharing a timestamp
    message_seq: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))

class Message(Base, TimestampedTenantMixin):
    __table_args__ = (
        UniqueConstraint("conversation_id", "seq", name="uq_message_conversation_seq"),
        Index("ix_message_conversation_order", "conversation_id", "created_at", "seq"),
    )

    conversation_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("conversation.id", ondelete="CASCADE"))
    seq: Mapped[int] = mapped_column(Integer)
    sender_id: Mapped[uuid.UUID] = mapped_column()
    sender_type: Mapped[str] = mapped_column(String(16))  # patient, doctor, clinic
    content: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_read: Mapped[bool] = mapped_column(default=False)
    read_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
