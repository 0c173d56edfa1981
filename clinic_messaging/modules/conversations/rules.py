"""
Role rules shared by every messaging operation.

* ``conversation_scope`` turns an actor into one normalized visibility filter,
  usable both as SQL clauses and as an in-memory predicate.
* ``INBOUND_RULES`` names, per role, which messages count as incoming
  (the ones a viewer marks read and sees as unread).
* ``SENDER_TYPES`` derives the sender category stamped on outgoing messages.
"""

import uuid
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import or_

from clinic_messaging.core.errors import ChatValidationError
from clinic_messaging.core.security import Principal, Role
from clinic_messaging.modules.conversations.models import Conversation, Message, SenderType

@dataclass(frozen=True)
class ConversationScope:
    clinic_id: uuid.UUID | None = None
    patient_id: uuid.UUID | None = None
    staff_member_id: uuid.UUID | None = None
    include_clinic_inbox: bool = False
    # a patient without a clinical record yet sees nothing
    empty: bool = False

    def clauses(self) -> list:
        cond = []
        if self.clinic_id is not None:
            cond.append(Conversation.clinic_id == self.clinic_id)
        if self.patient_id is not None:
            cond.append(Conversation.patient_id == self.patient_id)
        if self.staff_member_id is not None:
            assigned = Conversation.staff_member_id == self.staff_member_id
            cond.append(or_(assigned, Conversation.staff_member_id.is_(None)) if self.include_clinic_inbox else assigned)
        return cond

    def admits(self, conversation: Conversation) -> bool:
        if self.empty:
            return False
        if self.clinic_id is not None and conversation.clinic_id != self.clinic_id:
            return False
        if self.patient_id is not None and conversation.patient_id != self.patient_id:
            return False
        if self.staff_member_id is not None:
            if conversation.staff_member_id is None:
                return self.include_clinic_inbox
            return conversation.staff_member_id == self.staff_member_id
        return True

def require_clinic(principal: Principal) -> uuid.UUID:
    if principal.clinic_id is None:
        raise ChatValidationError("CLINIC_ID_REQUIRED", "Clinic ID is required for this role")
    return principal.clinic_id

def _patient_scope(principal: Principal, patient_id: uuid.UUID | None) -> ConversationScope:
    if patient_id is None:
        return ConversationScope(empty=True)
    # clinic is only enforced when the account carries one
    return ConversationScope(clinic_id=principal.clinic_id, patient_id=patient_id)

def _doctor_scope(principal: Principal, patient_id: uuid.UUID | None) -> ConversationScope:
    # own threads plus the shared clinic inbox; unassigned threads stay shared after a reply
    return ConversationScope(
        clinic_id=require_clinic(principal),
        staff_member_id=principal.user_id,
        include_clinic_inbox=True,
    )

def _clinic_scope(principal: Principal, patient_id: uuid.UUID | None) -> ConversationScope:
    return ConversationScope(clinic_id=require_clinic(principal))

SCOPE_BUILDERS: dict[Role, Callable[[Principal, uuid.UUID | None], ConversationScope]] = {
    Role.PATIENT: _patient_scope,
    Role.DOCTOR: _doctor_scope,
    Role.ADMIN: _clinic_scope,
    Role.CLINIC: _clinic_scope,
}

def conversation_scope(principal: Principal, patient_id: uuid.UUID | None = None) -> ConversationScope:
    return SCOPE_BUILDERS[principal.role](principal, patient_id)

@dataclass(frozen=True)
class InboundRule:
    sender_type: SenderType
    negate: bool = False

    def clause(self):
        if self.negate:
            return Message.sender_type != self.sender_type.value
        return Message.sender_type == self.sender_type.value

    def matches(self, sender_type: str) -> bool:
        return (sender_type == self.sender_type.value) != self.negate

INBOUND_RULES: dict[Role, InboundRule] = {
    Role.PATIENT: InboundRule(SenderType.PATIENT, negate=True),
    Role.DOCTOR: InboundRule(SenderType.PATIENT),
    Role.ADMIN: InboundRule(SenderType.PATIENT),
    Role.CLINIC: InboundRule(SenderType.PATIENT),
}

SENDER_TYPES: dict[Role, SenderType] = {
    Role.PATIENT: SenderType.PATIENT,
    Role.DOCTOR: SenderType.DOCTOR,
    Role.ADMIN: SenderType.CLINIC,
    Role.CLINIC: SenderType.CLINIC,
}
