from __future__ import annotations

import enum
import uuid
from datetime import datetime

from flask_login import UserMixin

from .extensions import db, login_manager


def _new_id() -> str:
    return str(uuid.uuid4())


def name_key(name: str) -> str:
    """Comparison key for participant names: trimmed and case-folded."""
    return (name or "").strip().casefold()


class EventStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(100), unique=True, nullable=False)
    status = db.Column(
        db.Enum(EventStatus, name="event_status"),
        default=EventStatus.PENDING,
        nullable=False,
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    participants = db.relationship(
        "Participant",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Participant.name",
    )

    @property
    def is_completed(self) -> bool:
        return self.status == EventStatus.COMPLETED


class Participant(UserMixin, db.Model):
    __tablename__ = "participants"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(64), nullable=False)
    # Lowercased, trimmed copy of name; backs the per-event uniqueness rule.
    name_key = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    access_code = db.Column(db.String(128), unique=True, nullable=False)
    has_accessed = db.Column(db.Boolean, default=False, nullable=False)

    # Set once, when the event is completed. Never exposed as a relationship so
    # the receiver record cannot leak through lazy loading.
    assigned_to_id = db.Column(
        db.String(36), db.ForeignKey("participants.id", ondelete="SET NULL"), nullable=True
    )

    event = db.relationship("Event", back_populates="participants")

    __table_args__ = (
        db.UniqueConstraint("event_id", "name_key", name="uq_participants_event_name"),
    )

    def get_id(self) -> str:
        # Sessions are keyed on the access code, so regenerating a code logs
        # out whoever was using the old one.
        return self.access_code


@login_manager.user_loader
def load_participant(access_code: str):
    return Participant.query.filter_by(access_code=access_code).first()
