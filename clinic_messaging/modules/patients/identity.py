"""
Patient identity resolution.

Patient accounts are created by the auth service independently of the clinic's
patient records. The two are joined by contact details (email or phone) and,
when a patient writes for the first time, the record is provisioned lazily.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_messaging.core.errors import ChatValidationError, NotFoundError
from clinic_messaging.core.security import Principal
from clinic_messaging.modules.accounts.models import Account
from clinic_messaging.modules.accounts.repository import AccountRepository, ClinicRepository
from clinic_messaging.modules.patients.models import Patient
from clinic_messaging.modules.patients.repository import PatientRepository

logger = logging.getLogger(__name__)

FALLBACK_PATIENT_NAME = "Patient"

@dataclass
class _Lookup:
    principal: Principal
    account: Account
    patients: PatientRepository

ClinicStep = Callable[[_Lookup], Awaitable[uuid.UUID | None]]

async def _clinic_from_principal(ctx: _Lookup) -> uuid.UUID | None:
    return ctx.principal.clinic_id

async def _clinic_from_account(ctx: _Lookup) -> uuid.UUID | None:
    return ctx.account.clinic_id

async def _clinic_from_prior_patient(ctx: _Lookup) -> uuid.UUID | None:
    prior = await ctx.patients.find_by_contact(ctx.account.email, ctx.account.phone)
    return prior.clinic_id if prior else None

# tried in order; the first step yielding a clinic wins
CLINIC_RESOLUTION_CHAIN: tuple[tuple[str, ClinicStep], ...] = (
    ("principal", _clinic_from_principal),
    ("account", _clinic_from_account),
    ("prior_patient", _clinic_from_prior_patient),
)

NAME_RESOLUTION_CHAIN: tuple[tuple[str, Callable[[Account], str | None]], ...] = (
    ("account_name", lambda a: a.name),
    ("email_local_part", lambda a: a.email.split("@")[0] if a.email else None),
    ("fallback", lambda a: FALLBACK_PATIENT_NAME),
)

async def resolve_clinic(ctx: _Lookup, chain=CLINIC_RESOLUTION_CHAIN) -> uuid.UUID | None:
    for source, step in chain:
        clinic_id = await step(ctx)
        if clinic_id:
            logger.debug(f"Clinic {clinic_id} resolved from {source} for account {ctx.account.id}")
            return clinic_id
    return None

def resolve_display_name(account: Account, chain=NAME_RESOLUTION_CHAIN) -> str:
    for _, step in chain:
        candidate = step(account)
        if candidate:
            name = candidate.strip()
            if not name:
                raise ChatValidationError("PATIENT_NAME_REQUIRED", "Patient name is required")
            return name
    raise ChatValidationError("PATIENT_NAME_REQUIRED", "Patient name is required")

class PatientIdentityResolver:
    def __init__(self, session: AsyncSession):
        self.accounts = AccountRepository(session)
        self.clinics = ClinicRepository(session)
        self.patients = PatientRepository(session)

    async def resolve(self, principal: Principal) -> uuid.UUID | None:
        """Patient record id behind a patient account, or None when there is none yet."""
        if not principal.is_patient:
            return None
        account = await self.accounts.get(principal.user_id)
        if account is None:
            return None
        patient = await self.patients.find_by_contact(account.email, account.phone, principal.clinic_id)
        return patient.id if patient else None

    async def find_or_create(self, principal: Principal) -> Patient:
        """Used on a patient's first message: unify account and clinical record exactly once."""
        account = await self.accounts.get_for_update(principal.user_id)
        if account is None:
            raise NotFoundError("USER_NOT_FOUND", "User not found")

        ctx = _Lookup(principal=principal, account=account, patients=self.patients)
        clinic_id = await resolve_clinic(ctx)
        if clinic_id is None or await self.clinics.get(clinic_id) is None:
            raise NotFoundError("CLINIC_NOT_FOUND", "Clinic not found")

        name = resolve_display_name(account)
        patient, created = await self.patients.get_or_create(
            clinic_id,
            legal_name=name,
            email=account.email or None,
            phone=account.phone or None,
        )
        if created:
            logger.info(f"Provisioned patient {patient.id} in clinic {clinic_id} for account {account.id}")
        return patient
