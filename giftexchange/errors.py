"""
Domain errors.

Every error carries a machine-readable ``kind`` and the HTTP status the API
answers with. Notification problems are not exceptions: they are collected as
``NotificationFailure`` values in a ``NotificationReport``.
"""
from __future__ import annotations


class GiftExchangeError(RuntimeError):
    kind = "GiftExchangeError"
    status_code = 500
    default_message = "Unexpected error."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFound(GiftExchangeError):
    kind = "NotFound"
    status_code = 404
    default_message = "Not found."


class EventNotFound(NotFound):
    kind = "EventNotFound"
    default_message = "Event not found."


class ParticipantNotFound(NotFound):
    kind = "ParticipantNotFound"
    default_message = "Participant not found."


class CodeNotFound(NotFound):
    """Raised for every failed code lookup, whatever the reason."""

    kind = "CodeNotFound"
    default_message = "Invalid access code."


class Unauthorized(GiftExchangeError):
    kind = "Unauthorized"
    status_code = 401
    default_message = "Unauthorized."


class ValidationError(GiftExchangeError):
    kind = "ValidationError"
    status_code = 400
    default_message = "Invalid input."


class AlreadyCompleted(GiftExchangeError):
    kind = "AlreadyCompleted"
    status_code = 409
    default_message = "The draw for this event has already been completed."


class InsufficientParticipants(GiftExchangeError):
    kind = "InsufficientParticipants"
    status_code = 409
    default_message = "At least 2 participants are needed to complete the draw."


class PersistenceFailure(GiftExchangeError):
    kind = "PersistenceFailure"
    status_code = 500
    default_message = "The event store failed to apply the change."
