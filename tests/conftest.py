"""
Pytest fixtures: an app on in-memory SQLite, the event store, a notifier
that records instead of sending, and helpers to seed events.
"""

import pytest

from giftexchange import create_app
from giftexchange.extensions import db
from giftexchange.services.events import ParticipantInput, create_event
from giftexchange.services.notifications import NOTIFIER_KEY
from giftexchange.store import EventStore

ADMIN_SECRET = "north-pole"


class RecordingNotifier:
    """Stands in for the MailerSend notifier; remembers every call."""

    def __init__(self, succeed=True):
        self.succeed = succeed
        self.calls = []
        self.base_url = "http://gifts.test/"

    def access_url(self, access_code):
        return f"{self.base_url}?code={access_code}"

    def notify(self, contact, template_kind, payload, participant_id=None):
        self.calls.append((contact, template_kind, payload))
        if callable(self.succeed):
            return self.succeed(contact)
        return self.succeed


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "ADMIN_SECRET": ADMIN_SECRET,
        "BASE_URL": "http://gifts.test/",
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def app_context(app):
    # Kept apart from the client: requests reuse an already pushed app
    # context, and with it flask.g, which would leak the logged-in user.
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def store(app_context):
    return EventStore(db.session)


@pytest.fixture
def notifier(app):
    recorder = RecordingNotifier()
    app.extensions[NOTIFIER_KEY] = recorder
    return recorder


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": ADMIN_SECRET}


@pytest.fixture
def make_event(store):
    def _make(name="Office2025", names=("Alice", "Bob", "Carol"), emails=None):
        emails = emails or {}
        return create_event(store, name, [ParticipantInput(n, emails.get(n)) for n in names])
    return _make
