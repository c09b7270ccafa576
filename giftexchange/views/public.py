from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask.views import MethodView
from flask_login import current_user, login_user, logout_user

from ..errors import ValidationError
from ..extensions import db
from ..policies import ParticipantRequiredMixin
from ..services.verification import describe_participant, verify_code
from ..store import EventStore


public_bp = Blueprint("public", __name__, url_prefix="/api")


class VerifyCodeView(MethodView):
    def post(self):
        body = request.get_json(silent=True) or {}
        code = body.get("code") if isinstance(body, dict) else None
        if not isinstance(code, str) or not code.strip():
            raise ValidationError("An access code is required.")

        participant, verification = verify_code(EventStore(db.session), code)
        login_user(participant)
        return jsonify(verification.to_dict())


class MeView(ParticipantRequiredMixin):
    def get(self):
        verification = describe_participant(EventStore(db.session), current_user._get_current_object())
        return jsonify(verification.to_dict())


class LogoutView(MethodView):
    def post(self):
        if current_user.is_authenticated:
            logout_user()
        return jsonify({"message": "Logged out."})


public_bp.add_url_rule("/verify-code", view_func=VerifyCodeView.as_view("verify_code"), methods=["POST"])
public_bp.add_url_rule("/me", view_func=MeView.as_view("me"))
public_bp.add_url_rule("/logout", view_func=LogoutView.as_view("logout"), methods=["POST"])
