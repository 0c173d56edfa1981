import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey
from clinic_messaging.core.base import Base, TimestampedMixin

class Clinic(Base, TimestampedMixin):
    # the tenant; scopes patients, staff and conversations
    name: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str | None] = mapped_column(String(120), unique=True, nullable=True)

class Account(Base, TimestampedMixin):
    # login identity: patients, doctors, clinic admins
    role: Mapped[str] = mapped_column(String(16))  # PATIENT, DOCTOR, ADMIN, CLINIC
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("clinic.id"), nullable=True, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
