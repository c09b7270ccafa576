from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..errors import ValidationError
from ..extensions import db
from ..policies import AdminRequiredMixin
from ..readmodels import ParticipantView
from ..services import events as event_service
from ..services.assignments import complete_event
from ..services.codes import regenerate_all_codes, regenerate_code
from ..services.notifications import current_notifier
from ..store import EventStore


admin_bp = Blueprint("admin", __name__, url_prefix="/api/events")


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")
    return body


def _participant_inputs(raw) -> list[event_service.ParticipantInput]:
    if not isinstance(raw, list):
        raise ValidationError("participants must be a list.")
    inputs = []
    for item in raw:
        if isinstance(item, str):
            inputs.append(event_service.ParticipantInput(name=item))
        elif isinstance(item, dict):
            inputs.append(event_service.ParticipantInput(name=item.get("name"), email=item.get("email")))
        else:
            raise ValidationError("Each participant must be a name or an object with a name.")
    return inputs


class EventListView(AdminRequiredMixin):
    def get(self):
        summaries = event_service.list_events(EventStore(db.session))
        return jsonify([s.to_dict() for s in summaries])

    def post(self):
        body = _json_body()
        store = EventStore(db.session)
        detail = event_service.create_event(
            store, body.get("name"), _participant_inputs(body.get("participants"))
        )
        payload = detail.to_dict()
        if body.get("notify"):
            report = event_service.send_invitations(store, current_notifier(), detail.id)
            payload["notifications"] = report.to_dict()
        return jsonify(payload), 201


class EventDetailView(AdminRequiredMixin):
    def get(self, event_id: str):
        return jsonify(event_service.get_event_detail(EventStore(db.session), event_id).to_dict())

    def delete(self, event_id: str):
        name = event_service.delete_event(EventStore(db.session), event_id)
        return jsonify({"message": "Event deleted.", "name": name})


class ParticipantListView(AdminRequiredMixin):
    def post(self, event_id: str):
        body = _json_body()
        view = event_service.add_participant(
            EventStore(db.session), event_id, body.get("name"), body.get("email")
        )
        return jsonify(view.to_dict()), 201


class ParticipantDetailView(AdminRequiredMixin):
    def patch(self, event_id: str, participant_id: str):
        body = _json_body()
        if "name" not in body and "email" not in body:
            raise ValidationError("Nothing to update: send name and/or email.")
        view = event_service.update_participant(
            EventStore(db.session),
            event_id,
            participant_id,
            name=body.get("name") if "name" in body else event_service.UNSET,
            email=body.get("email") if "email" in body else event_service.UNSET,
        )
        return jsonify(view.to_dict())

    def delete(self, event_id: str, participant_id: str):
        event_service.remove_participant(EventStore(db.session), event_id, participant_id)
        return jsonify({"message": "Participant removed."})


class RegenerateCodeView(AdminRequiredMixin):
    def post(self, event_id: str, participant_id: str):
        participant = regenerate_code(EventStore(db.session), event_id, participant_id)
        return jsonify({"message": "Access code regenerated.", "participant": ParticipantView.from_row(participant).to_dict()})


class RegenerateAllCodesView(AdminRequiredMixin):
    def post(self, event_id: str):
        participants = regenerate_all_codes(EventStore(db.session), event_id)
        return jsonify({
            "message": "Access codes regenerated.",
            "participants": [ParticipantView.from_row(p).to_dict() for p in participants],
        })


class CompleteEventView(AdminRequiredMixin):
    def post(self, event_id: str):
        store = EventStore(db.session)
        result = complete_event(store, current_notifier(), event_id)
        return jsonify({
            "message": "Names drawn. The event is now locked.",
            "event": event_service.get_event_detail(store, result.event.id).to_dict(),
            "notifications": result.notifications.to_dict(),
        })


class NotifyParticipantsView(AdminRequiredMixin):
    def post(self, event_id: str):
        report = event_service.resend_notifications(EventStore(db.session), current_notifier(), event_id)
        return jsonify({"notifications": report.to_dict()})


# Register routes
admin_bp.add_url_rule("", view_func=EventListView.as_view("events"), methods=["GET", "POST"])
admin_bp.add_url_rule("/<event_id>", view_func=EventDetailView.as_view("event"), methods=["GET", "DELETE"])
admin_bp.add_url_rule(
    "/<event_id>/participants",
    view_func=ParticipantListView.as_view("participants"),
    methods=["POST"],
)
admin_bp.add_url_rule(
    "/<event_id>/participants/<participant_id>",
    view_func=ParticipantDetailView.as_view("participant"),
    methods=["PATCH", "DELETE"],
)
admin_bp.add_url_rule(
    "/<event_id>/participants/<participant_id>/regenerate-code",
    view_func=RegenerateCodeView.as_view("regenerate_code"),
    methods=["POST"],
)
admin_bp.add_url_rule(
    "/<event_id>/regenerate-codes",
    view_func=RegenerateAllCodesView.as_view("regenerate_codes"),
    methods=["POST"],
)
admin_bp.add_url_rule("/<event_id>/complete", view_func=CompleteEventView.as_view("complete"), methods=["POST"])
admin_bp.add_url_rule("/<event_id>/notify", view_func=NotifyParticipantsView.as_view("notify"), methods=["POST"])
