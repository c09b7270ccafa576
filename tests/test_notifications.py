import json
import logging

import httpx
import pytest

from giftexchange.services.notifications import Notifier, direct_access_url, notify_participants


def _notifier(handler, api_key="mlsn.test-key"):
    return Notifier(
        api_key=api_key,
        from_email="santa@example.com",
        from_name="Santa",
        base_url="http://gifts.test/",
        api_url="https://mail.test/v1/email",
        transport=httpx.MockTransport(handler),
    )


PAYLOAD = {
    "participant_name": "Alice <3",
    "event_name": "Office2025",
    "access_code": "Office2025-12345678",
    "access_url": "http://gifts.test/?code=Office2025-12345678",
}


def test_direct_access_url_encodes_code():
    assert direct_access_url("http://gifts.test/", "A b&c") == "http://gifts.test/?code=A%20b%26c"


def test_notify_posts_rendered_message(app_context):
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(202)

    assert _notifier(handler).notify("alice@example.com", "welcome", PAYLOAD) is True

    (request,) = captured
    assert request.headers["Authorization"] == "Bearer mlsn.test-key"
    body = json.loads(request.content)
    assert body["to"] == [{"email": "alice@example.com", "name": "Alice <3"}]
    assert body["from"] == {"email": "santa@example.com", "name": "Santa"}
    assert "Office2025" in body["subject"]
    assert "Office2025-12345678" in body["text"]
    assert "Alice &lt;3" in body["html"]
    assert "Alice <3" in body["text"]


def test_notify_completion_template(app_context):
    captured = []

    def handler(request):
        captured.append(json.loads(request.content))
        return httpx.Response(202)

    assert _notifier(handler).notify("alice@example.com", "completion", PAYLOAD) is True
    assert "drawn" in captured[0]["subject"]


def test_notify_reports_rejection(app_context):
    assert _notifier(lambda request: httpx.Response(422, json={"message": "bad"})).notify(
        "alice@example.com", "welcome", PAYLOAD
    ) is False


def test_notify_swallows_transport_errors(app_context):
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    assert _notifier(handler).notify("alice@example.com", "welcome", PAYLOAD) is False


def test_notify_without_api_key_does_not_call_out(app_context):
    def handler(request):
        pytest.fail("no request expected")

    notifier = _notifier(handler, api_key="")
    assert notifier.configured is False
    assert notifier.notify("alice@example.com", "welcome", PAYLOAD) is False


def test_notify_unknown_template(app_context):
    def handler(request):
        pytest.fail("no request expected")

    assert _notifier(handler).notify("alice@example.com", "mystery", PAYLOAD) is False


def test_notify_participants_counts(store, make_event):
    detail = make_event(emails={"Alice": "alice@example.com", "Bob": "bob@example.com"})

    def handler(request):
        to = json.loads(request.content)["to"][0]["email"]
        return httpx.Response(202 if to == "alice@example.com" else 500)

    event = store.get_event(detail.id)
    report = notify_participants(_notifier(handler), event, store.list_participants(detail.id), "welcome")

    assert report.to_dict() == {"sent": 1, "failed": 1, "skipped": 1}
    bob = next(p for p in detail.participants if p.name == "Bob")
    assert [f.participant_id for f in report.failures] == [bob.id]


def test_notify_logs_participant_id_not_address(app_context, caplog):
    caplog.set_level(logging.INFO)

    _notifier(lambda request: httpx.Response(202)).notify(
        "alice@example.com", "welcome", PAYLOAD, participant_id="p-alice"
    )
    _notifier(lambda request: httpx.Response(500)).notify(
        "alice@example.com", "welcome", PAYLOAD, participant_id="p-alice"
    )

    entries = [r.msg for r in caplog.records if isinstance(r.msg, dict)]
    outcomes = [e for e in entries if e["event"] in ("notification_sent", "notification_rejected")]
    assert [e["event"] for e in outcomes] == ["notification_sent", "notification_rejected"]
    assert all(e["participant_id"] == "p-alice" for e in outcomes)
    assert "alice@example.com" not in caplog.text
