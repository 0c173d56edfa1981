import uuid
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from clinic_messaging.core.security import STAFF_ROLES
from clinic_messaging.modules.accounts.models import Account, Clinic

class AccountRepository:
    """Read-only lookups; accounts are provisioned by the auth service."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, account_id: uuid.UUID) -> Account | None:
        res = await self.session.execute(select(Account).where(Account.id == account_id))
        return res.scalar_one_or_none()

    async def get_for_update(self, account_id: uuid.UUID) -> Account | None:
        # serializes first-message provisioning per account
        q = select(Account).where(Account.id == account_id).with_for_update()
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_staff(self, clinic_id: uuid.UUID, account_id: uuid.UUID) -> Account | None:
        q = select(Account).where(
            Account.id == account_id,
            Account.clinic_id == clinic_id,
            Account.role.in_([r.value for r in STAFF_ROLES]),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

class ClinicRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, clinic_id: uuid.UUID) -> Clinic | None:
        res = await self.session.execute(select(Clinic).where(Clinic.id == clinic_id))
        return res.scalar_one_or_none()
