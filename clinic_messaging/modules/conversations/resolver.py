import logging
import uuid
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from clinic_messaging.modules.conversations.models import Conversation, ConversationKind
from clinic_messaging.modules.conversations.repository import ConversationRepository

logger = logging.getLogger(__name__)

def kind_for(staff_member_id: uuid.UUID | None) -> ConversationKind:
    return ConversationKind.PATIENT_DOCTOR if staff_member_id else ConversationKind.PATIENT_CLINIC

class ConversationResolver:
    """
    Finds or creates the single conversation of a (clinic, patient, staff member) triple.

    The existence check alone cannot stop two first-contact requests from both
    inserting; the partial unique indexes on ``conversation`` do, and the loser
    of that race re-reads the winner's row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ConversationRepository(session)

    async def find_or_create(self, clinic_id: uuid.UUID, patient_id: uuid.UUID, staff_member_id: uuid.UUID | None = None) -> Conversation:
        existing = await self.repo.find_for_triple(clinic_id, patient_id, staff_member_id)
        if existing:
            return existing
        try:
            async with self.session.begin_nested():
                obj = await self.repo.create(
                    clinic_id,
                    patient_id=patient_id,
                    staff_member_id=staff_member_id,
                    kind=kind_for(staff_member_id).value,
                )
        except IntegrityError:
            existing = await self.repo.find_for_triple(clinic_id, patient_id, staff_member_id)
            if existing is None:
                raise
            logger.info(f"Conversation {existing.id} created concurrently; reusing it")
            return existing
        logger.info(f"Created {obj.kind} conversation {obj.id} in clinic {clinic_id}")
        return obj
