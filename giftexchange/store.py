"""
Event Store: the only code that reads or writes persisted rows.

Mutating calls only flush. Callers group them inside ``transaction()``, which
commits on success and rolls the whole unit back on any error, so a
multi-step operation is never left half-applied.
"""
from __future__ import annotations

from contextlib import contextmanager
from functools import wraps
from typing import Iterator

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import AlreadyCompleted, EventNotFound, ParticipantNotFound, PersistenceFailure, ValidationError
from .logging import get_logger
from .models import Event, EventStatus, Participant, name_key

logger = get_logger(__name__)


def _translate_errors(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except IntegrityError as e:
            raise ValidationError("The change conflicts with an existing record.") from e
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"{fn.__name__} failed: {e.__class__.__name__}") from e
    return wrapper


class EventStore:
    def __init__(self, session: Session):
        self.session = session

    # --- units of work ---

    @contextmanager
    def transaction(self) -> Iterator["EventStore"]:
        try:
            yield self
            self.session.commit()
        except IntegrityError as e:
            self._rollback()
            raise ValidationError("The change conflicts with an existing record.") from e
        except SQLAlchemyError as e:
            self._rollback()
            raise PersistenceFailure(f"commit failed: {e.__class__.__name__}") from e
        except Exception:
            self._rollback()
            raise

    def _rollback(self) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError:
            logger.exception("rollback_failed")
            raise

    # --- events ---

    @_translate_errors
    def create_event(self, name: str) -> Event:
        event = Event(name=name, status=EventStatus.PENDING)
        self.session.add(event)
        self.session.flush()
        return event

    @_translate_errors
    def get_event(self, event_id: str) -> Event | None:
        return self.session.get(Event, event_id)

    def require_event(self, event_id: str) -> Event:
        event = self.get_event(event_id)
        if event is None:
            raise EventNotFound()
        return event

    @_translate_errors
    def find_event_by_name(self, name: str) -> Event | None:
        return self.session.execute(
            select(Event).where(func.lower(Event.name) == name.lower())
        ).scalar_one_or_none()

    @_translate_errors
    def list_events(self) -> list[Event]:
        return list(self.session.execute(
            select(Event).order_by(Event.created_at.desc())
        ).scalars())

    @_translate_errors
    def count_participants(self, event_id: str) -> int:
        return self.session.execute(
            select(func.count(Participant.id)).where(Participant.event_id == event_id)
        ).scalar_one()

    @_translate_errors
    def set_event_status(
        self, event_id: str, status: EventStatus, expected: EventStatus | None = None
    ) -> bool:
        """
        Conditional status update. With ``expected`` set, the row only changes
        if it still holds that status; returns whether a row was updated.
        """
        stmt = update(Event).where(Event.id == event_id)
        if expected is not None:
            stmt = stmt.where(Event.status == expected)
        result = self.session.execute(
            stmt.values(status=status).execution_options(synchronize_session=False)
        )
        updated = result.rowcount == 1
        if updated:
            event = self.session.identity_map.get(self.session.identity_key(Event, event_id))
            if event is not None:
                self.session.expire(event, ["status"])
        return updated

    @_translate_errors
    def lock_pending(self, event_id: str) -> Event:
        """
        Claim a PENDING event for a change only allowed before the draw.

        The no-op update holds the row's write lock until the enclosing
        transaction ends: a completion that committed first makes this raise
        AlreadyCompleted, a later one waits for this change to commit.
        """
        result = self.session.execute(
            update(Event)
            .where(Event.id == event_id, Event.status == EventStatus.PENDING)
            .values(status=Event.status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            exists = self.session.execute(
                select(Event.id).where(Event.id == event_id)
            ).scalar_one_or_none()
            if exists is None:
                raise EventNotFound()
            raise AlreadyCompleted()
        return self.require_event(event_id)

    @_translate_errors
    def delete_event(self, event_id: str) -> None:
        event = self.require_event(event_id)
        self.session.delete(event)
        self.session.flush()

    # --- participants ---

    @_translate_errors
    def list_participants(self, event_id: str) -> list[Participant]:
        return list(self.session.execute(
            select(Participant).where(Participant.event_id == event_id).order_by(Participant.name)
        ).scalars())

    @_translate_errors
    def get_participant(self, participant_id: str) -> Participant | None:
        return self.session.get(Participant, participant_id)

    def require_participant(self, participant_id: str, event_id: str | None = None) -> Participant:
        participant = self.get_participant(participant_id)
        if participant is None or (event_id is not None and participant.event_id != event_id):
            raise ParticipantNotFound()
        return participant

    @_translate_errors
    def find_participant_by_code(self, code: str) -> Participant | None:
        return self.session.execute(
            select(Participant).where(Participant.access_code == code)
        ).scalar_one_or_none()

    @_translate_errors
    def add_participant(self, event_id: str, name: str, contact: str | None, code: str) -> Participant:
        participant = Participant(
            event_id=event_id,
            name=name,
            name_key=name_key(name),
            email=contact,
            access_code=code,
            has_accessed=False,
        )
        self.session.add(participant)
        self.session.flush()
        return participant

    @_translate_errors
    def remove_participant(self, participant_id: str) -> None:
        participant = self.require_participant(participant_id)
        self.session.delete(participant)
        self.session.flush()

    @_translate_errors
    def rename_participant(self, participant_id: str, name: str) -> Participant:
        participant = self.require_participant(participant_id)
        participant.name = name
        participant.name_key = name_key(name)
        self.session.flush()
        return participant

    @_translate_errors
    def update_participant_code(self, participant_id: str, code: str) -> Participant:
        participant = self.require_participant(participant_id)
        participant.access_code = code
        participant.has_accessed = False
        self.session.flush()
        return participant

    @_translate_errors
    def update_participant_contact(self, participant_id: str, contact: str | None) -> Participant:
        participant = self.require_participant(participant_id)
        participant.email = contact
        self.session.flush()
        return participant

    @_translate_errors
    def mark_accessed(self, participant_id: str) -> None:
        participant = self.require_participant(participant_id)
        if not participant.has_accessed:
            participant.has_accessed = True
            self.session.flush()

    @_translate_errors
    def set_assignment(self, giver_id: str, receiver_id: str) -> None:
        if giver_id == receiver_id:
            raise ValidationError("A participant cannot be assigned to themselves.")
        giver = self.require_participant(giver_id)
        giver.assigned_to_id = receiver_id
        self.session.flush()
