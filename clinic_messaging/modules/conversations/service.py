import uuid
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from clinic_messaging.core.errors import NotFoundError
from clinic_messaging.core.paging import as_utc, page_meta, page_offset
from clinic_messaging.core.security import Principal
from clinic_messaging.modules.accounts.repository import AccountRepository
from clinic_messaging.modules.conversations.access import (
    ensure_can_delete, ensure_conversation_access,
)
from clinic_messaging.modules.conversations.messages import MessageStore
from clinic_messaging.modules.conversations.models import Conversation, Message
from clinic_messaging.modules.conversations.read_state import ReadTracker
from clinic_messaging.modules.conversations.repository import ConversationRepository, MessageRepository
from clinic_messaging.modules.conversations.resolver import ConversationResolver, kind_for
from clinic_messaging.modules.conversations.rules import SENDER_TYPES, conversation_scope, require_clinic
from clinic_messaging.modules.conversations.schemas import (
    ConversationOut, ConversationPage, ConversationSummary, MessageOut, MessagePage, MessageSend,
)
from clinic_messaging.modules.patients.identity import PatientIdentityResolver
from clinic_messaging.modules.patients.repository import PatientRepository


class ChatService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.convos = ConversationRepository(session)
        self.messages = MessageRepository(session)
        self.patients = PatientRepository(session)
        self.accounts = AccountRepository(session)
        self.identity = PatientIdentityResolver(session)
        self.resolver = ConversationResolver(session)
        self.store = MessageStore(session)
        self.reads = ReadTracker(session)

    async def _load(self, principal: Principal, conversation_id: uuid.UUID) -> Conversation:
        patient_id = await self.identity.resolve(principal)
        conv = await self.convos.get(conversation_id)
        return ensure_conversation_access(principal, conv, patient_id)

    # ---- Conversations ----
    async def list_conversations(self, principal: Principal, page: int = 1, limit: int = 50) -> ConversationPage:
        patient_id = await self.identity.resolve(principal)
        scope = conversation_scope(principal, patient_id)
        if scope.empty:
            return ConversationPage(conversations=[], meta=page_meta(0, page, limit))

        rows = await self.convos.list_in_scope(scope, limit=limit, offset=page_offset(page, limit))
        total = await self.convos.count_in_scope(scope)
        unread = await self.reads.unread_by_conversation([conv.id for conv, _, _ in rows], principal.role)
        items = [
            ConversationSummary(
                **ConversationOut.model_validate(conv).model_dump(),
                patient_name=patient_name,
                staff_member_name=staff_name,
                unread_count=unread.get(conv.id, 0),
            )
            for conv, patient_name, staff_name in rows
        ]
        return ConversationPage(conversations=items, meta=page_meta(total, page, limit))

    async def get_conversation(self, principal: Principal, conversation_id: uuid.UUID) -> ConversationSummary:
        conv = await self._load(principal, conversation_id)
        patient_name, staff_name = await self.convos.get_names(conv)
        unread = await self.reads.unread_by_conversation([conv.id], principal.role)
        return ConversationSummary(
            **ConversationOut.model_validate(conv).model_dump(),
            patient_name=patient_name,
            staff_member_name=staff_name,
            unread_count=unread.get(conv.id, 0),
        )

    # ---- Messages ----
    async def list_messages(self, principal: Principal, conversation_id: uuid.UUID, page: int = 1, limit: int = 50, before: datetime | None = None) -> MessagePage:
        conv = await self._load(principal, conversation_id)
        items, total = await self.store.list(conv.id, page=page, limit=limit, before=as_utc(before))
        return MessagePage(
            messages=[MessageOut.model_validate(m) for m in items],
            meta=page_meta(total, page, limit),
        )

    async def _open_conversation(self, principal: Principal, payload: MessageSend) -> Conversation:
        if principal.is_patient:
            # a patient always writes as themself; a supplied patient_id is ignored
            patient = await self.identity.find_or_create(principal)
            clinic_id, patient_id = patient.clinic_id, patient.id
        else:
            clinic_id = require_clinic(principal)
            if payload.patient_id is None or await self.patients.get(clinic_id, payload.patient_id) is None:
                raise NotFoundError("PATIENT_NOT_FOUND", "Patient not found")
            patient_id = payload.patient_id

        staff_id = payload.staff_member_id
        if staff_id is not None and await self.accounts.get_staff(clinic_id, staff_id) is None:
            raise NotFoundError("USER_NOT_FOUND", "Staff member not found")

        # gate the write before the thread exists
        ensure_conversation_access(
            principal,
            Conversation(clinic_id=clinic_id, patient_id=patient_id, staff_member_id=staff_id, kind=kind_for(staff_id).value),
            patient_id,
        )
        return await self.resolver.find_or_create(clinic_id, patient_id, staff_id)

    async def send_message(self, principal: Principal, payload: MessageSend) -> tuple[Message, Conversation]:
        if payload.conversation_id:
            conv = await self._load(principal, payload.conversation_id)
        else:
            conv = await self._open_conversation(principal, payload)
        msg = await self.store.append(
            conv,
            sender_id=principal.user_id,
            sender_type=SENDER_TYPES[principal.role],
            content=payload.content,
            image_url=payload.image_url,
        )
        await self.session.commit()
        return msg, conv

    async def delete_message(self, principal: Principal, message_id: uuid.UUID) -> Message:
        msg = await self.messages.get(message_id)
        if msg is None:
            raise NotFoundError("MESSAGE_NOT_FOUND", "Message not found")
        patient_id = await self.identity.resolve(principal)
        conv = await self.convos.get_for_update(msg.conversation_id)
        ensure_can_delete(principal, msg, conv, patient_id)
        deleted = await self.store.delete(conv, msg)
        await self.session.commit()
        return deleted

    # ---- Read state ----
    async def mark_read(self, principal: Principal, conversation_id: uuid.UUID) -> int:
        conv = await self._load(principal, conversation_id)
        count = await self.reads.mark_read(conv.id, principal.role)
        await self.session.commit()
        return count

    async def unread_count(self, principal: Principal) -> int:
        patient_id = await self.identity.resolve(principal)
        return await self.reads.unread_count(conversation_scope(principal, patient_id), principal.role)
