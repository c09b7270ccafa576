"""
Email notifications through the MailerSend HTTP API.

Delivery is best effort: ``Notifier.notify`` never raises, it answers with a
boolean, and batch sends are summarized in a ``NotificationReport``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable
from urllib.parse import quote

import httpx
from flask import current_app, render_template
from jinja2 import TemplateError

from ..logging import get_logger
from ..models import Event, Participant

logger = get_logger(__name__)

NOTIFIER_KEY = "giftexchange.notifier"
MAILERSEND_API_URL = "https://api.mailersend.com/v1/email"

SUBJECTS = {
    "welcome": 'You are invited to the gift exchange "{event_name}"',
    "completion": 'Names have been drawn for "{event_name}"',
}


@dataclass(frozen=True)
class NotificationFailure:
    participant_id: str
    reason: str


@dataclass
class NotificationReport:
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    failures: list[NotificationFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"sent": self.sent, "failed": self.failed, "skipped": self.skipped}


def direct_access_url(base_url: str, access_code: str) -> str:
    return f"{base_url}?code={quote(access_code, safe='')}"


class Notifier:
    def __init__(
        self,
        api_key: str | None,
        from_email: str,
        from_name: str,
        base_url: str,
        api_url: str = MAILERSEND_API_URL,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self.api_key = (api_key or "").strip()
        self.from_email = from_email
        self.from_name = from_name
        self.base_url = base_url
        self.api_url = api_url
        self.transport = transport
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def access_url(self, access_code: str) -> str:
        return direct_access_url(self.base_url, access_code)

    def notify(
        self, contact: str, template_kind: str, payload: dict, participant_id: str | None = None
    ) -> bool:
        """Send one message. Logs carry the participant id, never the address."""
        if template_kind not in SUBJECTS:
            logger.error("notification_unknown_template", template=template_kind)
            return False
        if not self.configured:
            logger.warning("notification_not_sent", reason="email_not_configured", template=template_kind)
            return False

        try:
            message = {
                "from": {"email": self.from_email, "name": self.from_name},
                "to": [{"email": contact, "name": payload.get("participant_name", "")}],
                "subject": SUBJECTS[template_kind].format(**payload),
                "html": render_template(f"email/{template_kind}.html", **payload),
                "text": render_template(f"email/{template_kind}.txt", **payload),
            }
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    self.api_url,
                    json=message,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except (httpx.HTTPError, TemplateError, KeyError) as e:
            logger.warning(
                "notification_failed", template=template_kind, participant_id=participant_id, error=str(e)
            )
            return False

        if response.is_success:
            logger.info("notification_sent", template=template_kind, participant_id=participant_id)
            return True

        logger.warning(
            "notification_rejected",
            template=template_kind,
            participant_id=participant_id,
            status=response.status_code,
        )
        return False


def current_notifier() -> Notifier:
    return current_app.extensions[NOTIFIER_KEY]


def notify_participants(
    notifier: Notifier, event: Event, participants: Iterable[Participant], template_kind: str
) -> NotificationReport:
    report = NotificationReport()
    for participant in participants:
        if not participant.email:
            report.skipped += 1
            continue

        payload = {
            "participant_name": participant.name,
            "event_name": event.name,
            "access_code": participant.access_code,
            "access_url": notifier.access_url(participant.access_code),
        }
        if notifier.notify(participant.email, template_kind, payload, participant_id=participant.id):
            report.sent += 1
        else:
            report.failed += 1
            report.failures.append(NotificationFailure(participant.id, "delivery failed"))

    if report.failed:
        logger.warning("notifications_partially_failed", event_id=event.id, template=template_kind, **report.to_dict())
    else:
        logger.info("notifications_dispatched", event_id=event.id, template=template_kind, **report.to_dict())
    return report
