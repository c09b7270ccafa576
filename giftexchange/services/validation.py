from __future__ import annotations

import re
from typing import Iterable

from ..errors import AlreadyCompleted, ValidationError
from ..models import Event, name_key

MIN_PARTICIPANTS = 2
MAX_PARTICIPANTS = 20
MAX_NAME_LENGTH = 64
MAX_EVENT_NAME_LENGTH = 100

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def clean_event_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Event name is required.")
    name = name.strip()
    if len(name) > MAX_EVENT_NAME_LENGTH:
        raise ValidationError(f"Event name must be at most {MAX_EVENT_NAME_LENGTH} characters.")
    return name


def clean_participant_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Participant name is required.")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Participant name must be at most {MAX_NAME_LENGTH} characters.")
    return name


def clean_contact(contact) -> str | None:
    """Empty means no contact address. Anything else must look like an email."""
    if contact is None:
        return None
    if not isinstance(contact, str):
        raise ValidationError("Email must be a string.")
    contact = contact.strip()
    if not contact:
        return None
    if len(contact) > 255 or not _EMAIL_RE.match(contact):
        raise ValidationError(f"Invalid email address: {contact!r}.")
    return contact


def validate_participant_count(count: int) -> None:
    if not MIN_PARTICIPANTS <= count <= MAX_PARTICIPANTS:
        raise ValidationError(
            f"An event needs between {MIN_PARTICIPANTS} and {MAX_PARTICIPANTS} participants."
        )


def ensure_unique_names(names: Iterable[str]) -> None:
    seen: set[str] = set()
    for name in names:
        key = name_key(name)
        if key in seen:
            raise ValidationError(f"Participant names must be unique: {name.strip()!r} is repeated.")
        seen.add(key)


def ensure_pending(event: Event) -> None:
    if event.is_completed:
        raise AlreadyCompleted()
