from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, TIMESTAMP, Index, text
from clinic_messaging.core.base import Base, TimestampedTenantMixin

class Patient(Base, TimestampedTenantMixin):
    __table_args__ = (
        # lazy provisioning from a patient account must never duplicate the clinical record
        Index(
            "uq_patient_clinic_email", "clinic_id", "primary_email", unique=True,
            postgresql_where=text("primary_email IS NOT NULL AND deleted_at IS NULL"),
            sqlite_where=text("primary_email IS NOT NULL AND deleted_at IS NULL"),
        ),
        # phone-only records have no email key; the phone is theirs
        Index(
            "uq_patient_clinic_phone_only", "clinic_id", "primary_phone", unique=True,
            postgresql_where=text("primary_email IS NULL AND primary_phone IS NOT NULL AND deleted_at IS NULL"),
            sqlite_where=text("primary_email IS NULL AND primary_phone IS NOT NULL AND deleted_at IS NULL"),
        ),
    )

    legal_name: Mapped[str] = mapped_column(String(200))
    preferred_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    primary_phone: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    primary_email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
