from __future__ import annotations

import hmac
from dataclasses import dataclass

from flask import current_app, request
from flask.views import MethodView
from flask_login import current_user

from .errors import Unauthorized
from .logging import get_logger

logger = get_logger(__name__)

ADMIN_GATE_KEY = "giftexchange.admin_gate"
ADMIN_SECRET_HEADER = "X-Admin-Secret"


@dataclass(frozen=True)
class AdminGate:
    """Shared-secret check for the admin surface. No secret configured means nobody gets in."""

    secret: str | None

    @property
    def configured(self) -> bool:
        return bool(self.secret)

    def check(self, supplied: str | None) -> None:
        if not self.configured:
            logger.error("admin_secret_not_configured")
            raise Unauthorized("Admin access is not configured.")
        if not supplied or not hmac.compare_digest(supplied.encode("utf-8"), self.secret.encode("utf-8")):
            logger.warning("admin_auth_rejected", path=request.path)
            raise Unauthorized()


def current_admin_gate() -> AdminGate:
    return current_app.extensions[ADMIN_GATE_KEY]


class AdminRequiredMixin(MethodView):
    def dispatch_request(self, *args, **kwargs):
        current_admin_gate().check(request.headers.get(ADMIN_SECRET_HEADER))
        return super().dispatch_request(*args, **kwargs)


class ParticipantRequiredMixin(MethodView):
    """Requires a participant session opened by a successful code verification."""

    def dispatch_request(self, *args, **kwargs):
        if not current_user.is_authenticated:
            raise Unauthorized("Enter your access code first.")
        return super().dispatch_request(*args, **kwargs)
