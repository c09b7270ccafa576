"""
The draw: turns a pending participant list into a completed circular
assignment, at most once per event.

The participants are shuffled (Fisher-Yates via ``random.shuffle``) and each
one gives to the next in the shuffled order, the last one wrapping around to
the first. That is a single cycle through everyone, so nobody draws
themselves and nobody receives twice.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Sequence

from ..errors import AlreadyCompleted, InsufficientParticipants
from ..logging import get_logger
from ..models import Event, EventStatus
from ..store import EventStore
from .notifications import NotificationReport, Notifier, notify_participants
from .validation import MIN_PARTICIPANTS, ensure_pending

logger = get_logger(__name__)

_rng = random.SystemRandom()


@dataclass
class CompletionResult:
    event: Event
    notifications: NotificationReport


def build_cycle(participant_ids: Sequence[str], rng: random.Random = _rng) -> dict[str, str]:
    """Return a giver -> receiver map forming one cycle over all ids."""
    if len(participant_ids) < MIN_PARTICIPANTS:
        raise InsufficientParticipants()
    if len(set(participant_ids)) != len(participant_ids):
        raise ValueError("participant ids must be distinct")

    order = list(participant_ids)
    rng.shuffle(order)
    n = len(order)
    return {order[i]: order[(i + 1) % n] for i in range(n)}


def complete_event(store: EventStore, notifier: Notifier, event_id: str) -> CompletionResult:
    """
    Draw names for an event and lock it.

    The status flip is a conditional update (PENDING -> COMPLETED) issued in
    the same transaction as the assignment links. Of two concurrent callers
    only one can match the PENDING row; the other gets AlreadyCompleted and
    its transaction is rolled back with nothing written. Participants are
    read after the flip, once no pending-only change can slip in.
    """
    with store.transaction():
        event = store.require_event(event_id)
        ensure_pending(event)

        if not store.set_event_status(event_id, EventStatus.COMPLETED, expected=EventStatus.PENDING):
            logger.info("event_completion_lost_race", event_id=event_id)
            raise AlreadyCompleted()

        participants = store.list_participants(event_id)
        if len(participants) < MIN_PARTICIPANTS:
            raise InsufficientParticipants()

        for giver_id, receiver_id in build_cycle([p.id for p in participants]).items():
            store.set_assignment(giver_id, receiver_id)

    logger.info("event_completed", event_id=event_id, participants=len(participants))

    # After the commit: a failed email never undoes the draw.
    report = notify_participants(notifier, event, participants, "completion")
    return CompletionResult(event=event, notifications=report)
