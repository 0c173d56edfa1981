import uuid
from sqlalchemy import select, or_, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from clinic_messaging.modules.patients.models import Patient

def _contact_clauses(email: str | None, phone: str | None) -> list:
    # blank contact values never match; an empty phone must not pair every phoneless patient
    cond = []
    if email:
        cond.append(Patient.primary_email == email)
    if phone:
        cond.append(Patient.primary_phone == phone)
    return cond

class PatientRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, clinic_id: uuid.UUID, **data) -> Patient:
        obj = Patient(clinic_id=clinic_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, clinic_id: uuid.UUID, patient_id: uuid.UUID) -> Patient | None:
        q = select(Patient).where(
            Patient.id == patient_id,
            Patient.clinic_id == clinic_id,
            Patient.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def find_by_contact(self, email: str | None, phone: str | None, clinic_id: uuid.UUID | None = None) -> Patient | None:
        """
        First patient matching email OR phone, optionally scoped to a clinic.
        An email match outranks a phone-only match; ties go to the newest record.
        """
        contact = _contact_clauses(email, phone)
        if not contact:
            return None
        cond = [Patient.deleted_at.is_(None), or_(*contact)]
        if clinic_id is not None:
            cond.append(Patient.clinic_id == clinic_id)
        specificity = case((Patient.primary_email == email, 0), else_=1) if email else None
        order = [specificity] if specificity is not None else []
        q = select(Patient).where(*cond).order_by(*order, Patient.created_at.desc()).limit(1)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_or_create(self, clinic_id: uuid.UUID, *, legal_name: str, email: str | None, phone: str | None) -> tuple[Patient, bool]:
        existing = await self.find_by_contact(email, phone, clinic_id)
        if existing:
            return existing, False
        try:
            async with self.session.begin_nested():
                obj = await self.create(clinic_id, legal_name=legal_name, primary_email=email, primary_phone=phone)
        except IntegrityError:
            # a concurrent request provisioned the same record first
            existing = await self.find_by_contact(email, phone, clinic_id)
            if existing is None:
                raise
            return existing, False
        return obj, True
