from __future__ import annotations

from dataclasses import dataclass

from ..errors import ValidationError
from ..logging import get_logger
from ..models import name_key
from ..readmodels import EventDetail, EventSummary, ParticipantView
from ..store import EventStore
from .codes import issue_code
from .notifications import NotificationReport, Notifier, notify_participants
from .validation import (
    MAX_PARTICIPANTS,
    clean_contact,
    clean_event_name,
    clean_participant_name,
    ensure_unique_names,
    validate_participant_count,
)

logger = get_logger(__name__)

UNSET = object()


@dataclass(frozen=True)
class ParticipantInput:
    name: str
    email: str | None = None


def create_event(store: EventStore, name, participants: list[ParticipantInput]) -> EventDetail:
    """
    Create a PENDING event together with its participants and their codes.

    All input is validated before the store is touched; the inserts share one
    transaction, so a failure leaves neither the event nor any participant.
    """
    name = clean_event_name(name)
    validate_participant_count(len(participants))
    cleaned = [
        ParticipantInput(clean_participant_name(p.name), clean_contact(p.email))
        for p in participants
    ]
    ensure_unique_names(p.name for p in cleaned)

    if store.find_event_by_name(name) is not None:
        raise ValidationError(f"An event named {name!r} already exists.")

    with store.transaction():
        event = store.create_event(name)
        taken: set[str] = set()
        for p in cleaned:
            code = issue_code(store, name, taken=taken)
            taken.add(code)
            store.add_participant(event.id, p.name, p.email, code)

    logger.info("event_created", event_id=event.id, participants=len(cleaned))
    return get_event_detail(store, event.id)


def list_events(store: EventStore) -> list[EventSummary]:
    return [
        EventSummary(
            id=event.id,
            name=event.name,
            status=event.status,
            created_at=event.created_at,
            participant_count=store.count_participants(event.id),
        )
        for event in store.list_events()
    ]


def get_event_detail(store: EventStore, event_id: str) -> EventDetail:
    event = store.require_event(event_id)
    return EventDetail.build(event, store.list_participants(event_id))


def delete_event(store: EventStore, event_id: str) -> str:
    """Delete an event, whatever its status, with all of its participants."""
    with store.transaction():
        event = store.require_event(event_id)
        name = event.name
        store.delete_event(event_id)

    logger.info("event_deleted", event_id=event_id)
    return name


def _ensure_name_free(store: EventStore, event_id: str, name: str, exclude_id: str | None = None) -> None:
    key = name_key(name)
    for other in store.list_participants(event_id):
        if other.id != exclude_id and other.name_key == key:
            raise ValidationError(f"A participant named {name!r} already exists in this event.")


def add_participant(store: EventStore, event_id: str, name, email=None) -> ParticipantView:
    name = clean_participant_name(name)
    email = clean_contact(email)

    with store.transaction():
        event = store.lock_pending(event_id)
        if store.count_participants(event_id) >= MAX_PARTICIPANTS:
            raise ValidationError(f"An event can have at most {MAX_PARTICIPANTS} participants.")
        _ensure_name_free(store, event_id, name)
        participant = store.add_participant(event_id, name, email, issue_code(store, event.name))

    logger.info("participant_added", event_id=event_id, participant_id=participant.id)
    return ParticipantView.from_row(participant)


def update_participant(
    store: EventStore, event_id: str, participant_id: str, name=UNSET, email=UNSET
) -> ParticipantView:
    """Rename a participant and/or change their contact. Arguments left UNSET are kept."""
    if name is not UNSET:
        name = clean_participant_name(name)
    if email is not UNSET:
        email = clean_contact(email)

    with store.transaction():
        store.lock_pending(event_id)
        participant = store.require_participant(participant_id, event_id=event_id)
        if name is not UNSET and name != participant.name:
            _ensure_name_free(store, event_id, name, exclude_id=participant.id)
            store.rename_participant(participant.id, name)
        if email is not UNSET:
            store.update_participant_contact(participant.id, email)

    logger.info("participant_updated", event_id=event_id, participant_id=participant_id)
    return ParticipantView.from_row(participant)


def remove_participant(store: EventStore, event_id: str, participant_id: str) -> None:
    with store.transaction():
        store.lock_pending(event_id)
        store.require_participant(participant_id, event_id=event_id)
        store.remove_participant(participant_id)

    logger.info("participant_removed", event_id=event_id, participant_id=participant_id)


def resend_notifications(store: EventStore, notifier: Notifier, event_id: str) -> NotificationReport:
    """Invitations while the event is pending, draw notices once it is completed."""
    event = store.require_event(event_id)
    template_kind = "completion" if event.is_completed else "welcome"
    return notify_participants(notifier, event, store.list_participants(event_id), template_kind)


def send_invitations(store: EventStore, notifier: Notifier, event_id: str) -> NotificationReport:
    event = store.require_event(event_id)
    return notify_participants(notifier, event, store.list_participants(event_id), "welcome")
