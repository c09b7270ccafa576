"""
Read models handed to the HTTP layer.

They are built from store rows by an explicit join, never by hanging extra
attributes on ORM objects.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from .models import Event, EventStatus, Participant


@dataclass(frozen=True)
class ParticipantView:
    id: str
    name: str
    email: str | None
    access_code: str
    has_accessed: bool
    assigned_to_name: str | None = None

    @classmethod
    def from_row(cls, participant: Participant, names_by_id: dict[str, str] | None = None) -> "ParticipantView":
        assigned_to_name = None
        if names_by_id and participant.assigned_to_id:
            assigned_to_name = names_by_id.get(participant.assigned_to_id)
        return cls(
            id=participant.id,
            name=participant.name,
            email=participant.email,
            access_code=participant.access_code,
            has_accessed=participant.has_accessed,
            assigned_to_name=assigned_to_name,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "access_code": self.access_code,
            "has_accessed": self.has_accessed,
            "assigned_to_name": self.assigned_to_name,
        }


@dataclass(frozen=True)
class EventSummary:
    id: str
    name: str
    status: EventStatus
    created_at: datetime
    participant_count: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "participant_count": self.participant_count,
        }


@dataclass(frozen=True)
class EventDetail:
    id: str
    name: str
    status: EventStatus
    created_at: datetime
    participants: list[ParticipantView]

    @classmethod
    def build(cls, event: Event, participants: Iterable[Participant]) -> "EventDetail":
        participants = list(participants)
        names_by_id = None
        if event.is_completed:
            names_by_id = {p.id: p.name for p in participants}
        return cls(
            id=event.id,
            name=event.name,
            status=event.status,
            created_at=event.created_at,
            participants=[ParticipantView.from_row(p, names_by_id) for p in participants],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "participants": [p.to_dict() for p in self.participants],
        }


@dataclass(frozen=True)
class Verification:
    """What a participant may see about themselves. Nothing about anyone else."""

    participant_id: str
    participant_name: str
    event_id: str
    event_name: str
    event_status: EventStatus
    assigned_to_name: str | None = None

    def to_dict(self) -> dict:
        return {
            "participant": {"id": self.participant_id, "name": self.participant_name},
            "event": {
                "id": self.event_id,
                "name": self.event_name,
                "status": self.event_status.value,
            },
            "assigned_to": {"name": self.assigned_to_name} if self.assigned_to_name else None,
        }
