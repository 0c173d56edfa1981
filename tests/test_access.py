"""
Tests for role scopes and the access guard.

Covers:
  - Decision table per role (patient / doctor / admin / clinic)
  - Clinic inbox (unassigned) conversations shared by all doctors
  - Patients without a clinic on their account
  - Sender-only deletion
  - Inbound-sender rule and sender-type derivation
"""

import uuid

import pytest

from clinic_messaging.core.errors import AccessDeniedError, ChatValidationError, NotFoundError
from clinic_messaging.core.security import Principal, Role
from clinic_messaging.modules.conversations.access import (
    can_access,
    ensure_can_delete,
    ensure_conversation_access,
)
from clinic_messaging.modules.conversations.models import Conversation, Message, SenderType
from clinic_messaging.modules.conversations.rules import (
    INBOUND_RULES,
    SENDER_TYPES,
    conversation_scope,
)

CLINIC = uuid.uuid4()
OTHER_CLINIC = uuid.uuid4()
DOCTOR = uuid.uuid4()
OTHER_DOCTOR = uuid.uuid4()
PATIENT = uuid.uuid4()


def _conversation(clinic_id=CLINIC, patient_id=PATIENT, staff_member_id=None) -> Conversation:
    return Conversation(
        id=uuid.uuid4(),
        clinic_id=clinic_id,
        patient_id=patient_id,
        staff_member_id=staff_member_id,
        kind="patient_doctor" if staff_member_id else "patient_clinic",
    )


def _principal(role: Role, user_id=None, clinic_id=CLINIC) -> Principal:
    return Principal(user_id=user_id or uuid.uuid4(), role=role, clinic_id=clinic_id)


# ── Patient ──


class TestPatientAccess:
    def test_own_conversation(self):
        p = _principal(Role.PATIENT, clinic_id=None)
        assert can_access(p, _conversation(), PATIENT) is True

    def test_other_patients_conversation(self):
        p = _principal(Role.PATIENT, clinic_id=None)
        assert can_access(p, _conversation(patient_id=uuid.uuid4()), PATIENT) is False

    def test_clinic_enforced_when_known(self):
        p = _principal(Role.PATIENT, clinic_id=OTHER_CLINIC)
        assert can_access(p, _conversation(), PATIENT) is False

    def test_unresolved_identity_sees_nothing(self):
        p = _principal(Role.PATIENT, clinic_id=None)
        assert can_access(p, _conversation(), None) is False


# ── Doctor ──


class TestDoctorAccess:
    def test_assigned_to_self(self):
        p = _principal(Role.DOCTOR, user_id=DOCTOR)
        assert can_access(p, _conversation(staff_member_id=DOCTOR)) is True

    def test_assigned_to_another_doctor_denied(self):
        p = _principal(Role.DOCTOR, user_id=DOCTOR)
        with pytest.raises(AccessDeniedError):
            ensure_conversation_access(p, _conversation(staff_member_id=OTHER_DOCTOR))

    def test_clinic_inbox_is_shared(self):
        p = _principal(Role.DOCTOR, user_id=DOCTOR)
        conv = _conversation(staff_member_id=None)
        assert ensure_conversation_access(p, conv) is conv

    def test_other_clinic_denied(self):
        p = _principal(Role.DOCTOR, user_id=DOCTOR)
        assert can_access(p, _conversation(clinic_id=OTHER_CLINIC)) is False

    def test_missing_clinic_is_a_validation_error(self):
        p = _principal(Role.DOCTOR, user_id=DOCTOR, clinic_id=None)
        with pytest.raises(ChatValidationError) as exc:
            can_access(p, _conversation())
        assert exc.value.code == "CLINIC_ID_REQUIRED"


# ── Admin / Clinic ──


class TestClinicWideAccess:
    @pytest.mark.parametrize("role", [Role.ADMIN, Role.CLINIC])
    def test_sees_every_conversation_of_the_clinic(self, role):
        p = _principal(role)
        assert can_access(p, _conversation(staff_member_id=OTHER_DOCTOR)) is True
        assert can_access(p, _conversation(staff_member_id=None)) is True

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.CLINIC])
    def test_other_clinic_denied(self, role):
        assert can_access(_principal(role), _conversation(clinic_id=OTHER_CLINIC)) is False


# ── Not found before access ──


class TestMissingTargets:
    def test_missing_conversation(self):
        with pytest.raises(NotFoundError) as exc:
            ensure_conversation_access(_principal(Role.ADMIN), None)
        assert exc.value.code == "CONVERSATION_NOT_FOUND"

    def test_missing_message(self):
        with pytest.raises(NotFoundError) as exc:
            ensure_can_delete(_principal(Role.ADMIN), None, _conversation())
        assert exc.value.code == "MESSAGE_NOT_FOUND"


# ── Deletion ──


class TestDeleteRights:
    def _message(self, sender_id, sender_type=SenderType.PATIENT) -> Message:
        return Message(id=uuid.uuid4(), sender_id=sender_id, sender_type=sender_type.value, content="hi")

    def test_sender_may_delete(self):
        p = _principal(Role.DOCTOR, user_id=DOCTOR)
        msg = self._message(DOCTOR, SenderType.DOCTOR)
        assert ensure_can_delete(p, msg, _conversation(staff_member_id=DOCTOR)) is msg

    def test_admin_cannot_delete_patient_message(self):
        admin = _principal(Role.ADMIN)
        conv = _conversation()
        assert can_access(admin, conv) is True
        with pytest.raises(AccessDeniedError):
            ensure_can_delete(admin, self._message(uuid.uuid4()), conv)

    def test_sender_without_conversation_access_denied(self):
        # a doctor later unassigned from a thread keeps no rights on it
        p = _principal(Role.DOCTOR, user_id=DOCTOR)
        msg = self._message(DOCTOR, SenderType.DOCTOR)
        with pytest.raises(AccessDeniedError):
            ensure_can_delete(p, msg, _conversation(staff_member_id=OTHER_DOCTOR))


# ── Role rules ──


class TestRoleRules:
    def test_patient_reads_everything_not_from_patients(self):
        rule = INBOUND_RULES[Role.PATIENT]
        assert rule.matches("doctor") and rule.matches("clinic")
        assert not rule.matches("patient")

    @pytest.mark.parametrize("role", [Role.DOCTOR, Role.ADMIN, Role.CLINIC])
    def test_staff_read_patient_messages(self, role):
        rule = INBOUND_RULES[role]
        assert rule.matches("patient")
        assert not rule.matches("doctor")
        assert not rule.matches("clinic")

    def test_every_role_has_rules(self):
        assert set(INBOUND_RULES) == set(Role)
        assert set(SENDER_TYPES) == set(Role)

    def test_sender_types(self):
        assert SENDER_TYPES[Role.PATIENT] is SenderType.PATIENT
        assert SENDER_TYPES[Role.DOCTOR] is SenderType.DOCTOR
        assert SENDER_TYPES[Role.ADMIN] is SenderType.CLINIC
        assert SENDER_TYPES[Role.CLINIC] is SenderType.CLINIC

    def test_doctor_scope_shape(self):
        scope = conversation_scope(_principal(Role.DOCTOR, user_id=DOCTOR))
        assert scope.clinic_id == CLINIC
        assert scope.staff_member_id == DOCTOR
        assert scope.include_clinic_inbox is True
        assert len(scope.clauses()) == 2

    def test_unresolved_patient_scope_is_empty(self):
        scope = conversation_scope(_principal(Role.PATIENT, clinic_id=None), None)
        assert scope.empty is True
