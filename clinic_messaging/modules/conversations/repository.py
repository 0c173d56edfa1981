import uuid
from datetime import datetime
from typing import Sequence
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from clinic_messaging.modules.accounts.models import Account
from clinic_messaging.modules.conversations.models import Conversation, Message
from clinic_messaging.modules.conversations.rules import ConversationScope, InboundRule
from clinic_messaging.modules.patients.models import Patient

class ConversationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, clinic_id: uuid.UUID, **data) -> Conversation:
        obj = Conversation(clinic_id=clinic_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, cid: uuid.UUID) -> Conversation | None:
        # not tenant-filtered: patients may lack a clinic, the access guard decides
        res = await self.session.execute(select(Conversation).where(Conversation.id == cid))
        return res.scalar_one_or_none()

    async def get_for_update(self, cid: uuid.UUID) -> Conversation | None:
        q = (
            select(Conversation)
            .where(Conversation.id == cid)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def find_for_triple(self, clinic_id: uuid.UUID, patient_id: uuid.UUID, staff_member_id: uuid.UUID | None) -> Conversation | None:
        staff = (
            Conversation.staff_member_id.is_(None)
            if staff_member_id is None
            else Conversation.staff_member_id == staff_member_id
        )
        q = select(Conversation).where(
            Conversation.clinic_id == clinic_id,
            Conversation.patient_id == patient_id,
            staff,
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def next_seq(self, cid: uuid.UUID) -> int:
        # row-level increment; serializes concurrent appends to one conversation
        q = (
            update(Conversation)
            .where(Conversation.id == cid)
            .values(message_seq=Conversation.message_seq + 1)
            .returning(Conversation.message_seq)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(q)
        return res.scalar_one()

    async def list_in_scope(self, scope: ConversationScope, limit: int = 50, offset: int = 0) -> Sequence[tuple[Conversation, str | None, str | None]]:
        q = (
            select(Conversation, Patient.legal_name, Account.name)
            .join(Patient, Patient.id == Conversation.patient_id)
            .outerjoin(Account, Account.id == Conversation.staff_member_id)
            .where(*scope.clauses())
            .order_by(
                Conversation.last_message_at.is_(None),
                Conversation.last_message_at.desc(),
                Conversation.created_at.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        res = await self.session.execute(q)
        return res.all()

    async def count_in_scope(self, scope: ConversationScope) -> int:
        res = await self.session.execute(select(func.count(Conversation.id)).where(*scope.clauses()))
        return res.scalar_one()

    async def get_names(self, conversation: Conversation) -> tuple[str | None, str | None]:
        res = await self.session.execute(select(Patient.legal_name).where(Patient.id == conversation.patient_id))
        patient_name = res.scalar_one_or_none()
        staff_name = None
        if conversation.staff_member_id is not None:
            res = await self.session.execute(select(Account.name).where(Account.id == conversation.staff_member_id))
            staff_name = res.scalar_one_or_none()
        return patient_name, staff_name

class MessageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, clinic_id: uuid.UUID, **data) -> Message:
        obj = Message(clinic_id=clinic_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, mid: uuid.UUID) -> Message | None:
        res = await self.session.execute(select(Message).where(Message.id == mid))
        return res.scalar_one_or_none()

    async def delete(self, obj: Message) -> None:
        await self.session.delete(obj)
        await self.session.flush()

    def _window(self, conversation_id: uuid.UUID, before: datetime | None) -> list:
        cond = [Message.conversation_id == conversation_id]
        if before is not None:
            cond.append(Message.created_at < before)
        return cond

    async def list_for_conversation(self, conversation_id: uuid.UUID, limit: int = 50, offset: int = 0, before: datetime | None = None) -> Sequence[Message]:
        q = (
            select(Message)
            .where(*self._window(conversation_id, before))
            .order_by(Message.created_at.asc(), Message.seq.asc())
            .limit(limit)
            .offset(offset)
        )
        res = await self.session.execute(q)
        return res.scalars().all()

    async def count_for_conversation(self, conversation_id: uuid.UUID, before: datetime | None = None) -> int:
        res = await self.session.execute(select(func.count(Message.id)).where(*self._window(conversation_id, before)))
        return res.scalar_one()

    async def latest(self, conversation_id: uuid.UUID) -> Message | None:
        q = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.seq.desc())
            .limit(1)
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def mark_read(self, conversation_id: uuid.UUID, rule: InboundRule, read_at: datetime) -> int:
        q = (
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                rule.clause(),
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
            .returning(Message.id)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(q)
        return len(res.scalars().all())

    async def count_unread(self, scope: ConversationScope, rule: InboundRule) -> int:
        q = (
            select(func.count(Message.id))
            .join(Conversation, Conversation.id == Message.conversation_id)
            .where(*scope.clauses(), rule.clause(), Message.is_read.is_(False))
        )
        res = await self.session.execute(q)
        return res.scalar_one()

    async def count_unread_by_conversation(self, conversation_ids: list[uuid.UUID], rule: InboundRule) -> dict[uuid.UUID, int]:
        if not conversation_ids:
            return {}
        q = (
            select(Message.conversation_id, func.count(Message.id))
            .where(
                Message.conversation_id.in_(conversation_ids),
                rule.clause(),
                Message.is_read.is_(False),
            )
            .group_by(Message.conversation_id)
        )
        res = await self.session.execute(q)
        return {cid: n for cid, n in res.all()}
