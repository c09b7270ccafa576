"""
Access codes.

A code looks like ``Office2025-48213377``: the event name stripped to
``[A-Za-z0-9]``, a dash, then 8 random digits. Codes are meant to be read out
or pasted from an email, not to resist guessing.
"""
from __future__ import annotations

import random
import re

from ..errors import PersistenceFailure
from ..logging import get_logger
from ..models import Participant
from ..store import EventStore

logger = get_logger(__name__)

CODE_SEPARATOR = "-"
CODE_MIN = 10_000_000
CODE_MAX = 99_999_999
MAX_ATTEMPTS = 5

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_rng = random.SystemRandom()


def sanitize_event_name(name: str) -> str:
    return _NON_ALNUM.sub("", name)


def generate_code(event_name: str, rng: random.Random = _rng) -> str:
    return f"{sanitize_event_name(event_name)}{CODE_SEPARATOR}{rng.randint(CODE_MIN, CODE_MAX)}"


def issue_code(store: EventStore, event_name: str, taken: set[str] | None = None) -> str:
    """Generate a code not held by anyone in the store nor listed in ``taken``."""
    taken = taken or set()
    for _ in range(MAX_ATTEMPTS):
        code = generate_code(event_name)
        if code in taken:
            continue
        if store.find_participant_by_code(code) is None:
            return code
    logger.error("access_code_exhausted", attempts=MAX_ATTEMPTS)
    raise PersistenceFailure("Could not allocate a unique access code.")


def regenerate_code(store: EventStore, event_id: str, participant_id: str) -> Participant:
    """Give one participant a fresh code. Clears ``has_accessed``."""
    with store.transaction():
        event = store.lock_pending(event_id)
        participant = store.require_participant(participant_id, event_id=event_id)
        code = issue_code(store, event.name, taken={participant.access_code})
        store.update_participant_code(participant.id, code)

    logger.info("access_code_regenerated", event_id=event_id, participant_id=participant_id)
    return participant


def regenerate_all_codes(store: EventStore, event_id: str) -> list[Participant]:
    """
    Replace every code of an event in a single transaction: either all
    participants get a new code or none do.
    """
    with store.transaction():
        event = store.lock_pending(event_id)
        participants = store.list_participants(event_id)
        taken = {p.access_code for p in participants}
        for participant in participants:
            code = issue_code(store, event.name, taken=taken)
            taken.add(code)
            store.update_participant_code(participant.id, code)

    logger.info("access_codes_regenerated", event_id=event_id, count=len(participants))
    return participants
