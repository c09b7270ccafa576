from __future__ import annotations

from ..errors import CodeNotFound
from ..logging import get_logger
from ..models import Participant
from ..readmodels import Verification
from ..store import EventStore

logger = get_logger(__name__)


def describe_participant(store: EventStore, participant: Participant) -> Verification:
    """The participant's own view: their event and, once drawn, their recipient's name."""
    event = store.require_event(participant.event_id)

    assigned_to_name = None
    if event.is_completed and participant.assigned_to_id:
        receiver = store.get_participant(participant.assigned_to_id)
        assigned_to_name = receiver.name if receiver is not None else None

    return Verification(
        participant_id=participant.id,
        participant_name=participant.name,
        event_id=event.id,
        event_name=event.name,
        event_status=event.status,
        assigned_to_name=assigned_to_name,
    )


def verify_code(store: EventStore, code: str) -> tuple[Participant, Verification]:
    """
    Resolve an access code. Any miss, whatever the cause, is CodeNotFound.
    The first successful lookup marks the participant as having accessed.
    """
    code = (code or "").strip()
    if not code:
        raise CodeNotFound()

    with store.transaction():
        participant = store.find_participant_by_code(code)
        if participant is None:
            raise CodeNotFound()
        if not participant.has_accessed:
            store.mark_accessed(participant.id)
            logger.info("participant_first_access", participant_id=participant.id)

    return participant, describe_participant(store, participant)
