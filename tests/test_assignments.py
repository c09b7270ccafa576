import random
import threading

import pytest

from giftexchange import create_app
from giftexchange.errors import AlreadyCompleted, EventNotFound, InsufficientParticipants, PersistenceFailure
from giftexchange.extensions import db
from giftexchange.models import EventStatus
from giftexchange.services.assignments import build_cycle, complete_event
from giftexchange.services.events import ParticipantInput, add_participant, create_event, remove_participant
from giftexchange.services.notifications import current_notifier
from giftexchange.store import EventStore


def _assert_single_cycle(mapping):
    givers = set(mapping)
    assert set(mapping.values()) == givers
    assert all(giver != receiver for giver, receiver in mapping.items())

    # Walking from any giver visits everyone before coming back.
    start = next(iter(mapping))
    seen = [start]
    current = mapping[start]
    while current != start:
        seen.append(current)
        current = mapping[current]
    assert len(seen) == len(givers)


@pytest.mark.parametrize("n", range(2, 21))
def test_build_cycle_is_a_derangement(n):
    ids = [f"p{i}" for i in range(n)]
    _assert_single_cycle(build_cycle(ids))


def test_build_cycle_two_people_swap():
    assert build_cycle(["a", "b"]) == {"a": "b", "b": "a"}


def test_build_cycle_rejects_fewer_than_two():
    with pytest.raises(InsufficientParticipants):
        build_cycle(["only"])
    with pytest.raises(InsufficientParticipants):
        build_cycle([])


def test_build_cycle_rejects_duplicate_ids():
    with pytest.raises(ValueError):
        build_cycle(["a", "a", "b"])


def test_build_cycle_reaches_every_three_cycle():
    rng = random.Random(1234)
    seen = {tuple(sorted(build_cycle(["A", "B", "C"], rng=rng).items())) for _ in range(200)}
    assert seen == {
        (("A", "B"), ("B", "C"), ("C", "A")),
        (("A", "C"), ("B", "A"), ("C", "B")),
    }


def test_complete_event_office_scenario(store, notifier, make_event):
    detail = make_event("Office2025", ("A", "B", "C"))

    result = complete_event(store, notifier, detail.id)

    assert result.event.status == EventStatus.COMPLETED
    participants = store.list_participants(detail.id)
    mapping = {p.id: p.assigned_to_id for p in participants}
    _assert_single_cycle(mapping)


@pytest.mark.parametrize("n", [2, 5, 20])
def test_complete_event_assigns_everyone(store, notifier, make_event, n):
    detail = make_event(f"Party{n}", [f"Guest {i}" for i in range(n)])

    complete_event(store, notifier, detail.id)

    participants = store.list_participants(detail.id)
    assert all(p.assigned_to_id is not None for p in participants)
    _assert_single_cycle({p.id: p.assigned_to_id for p in participants})


def test_complete_event_twice_keeps_first_assignment(store, notifier, make_event):
    detail = make_event()
    complete_event(store, notifier, detail.id)
    first = {p.id: p.assigned_to_id for p in store.list_participants(detail.id)}

    with pytest.raises(AlreadyCompleted):
        complete_event(store, notifier, detail.id)

    assert {p.id: p.assigned_to_id for p in store.list_participants(detail.id)} == first


def test_complete_event_with_one_participant_stays_pending(store, notifier, make_event):
    detail = make_event(names=("Alice", "Bob"))
    remove_participant(store, detail.id, detail.participants[0].id)

    with pytest.raises(InsufficientParticipants):
        complete_event(store, notifier, detail.id)

    assert store.get_event(detail.id).status == EventStatus.PENDING
    assert all(p.assigned_to_id is None for p in store.list_participants(detail.id))


def test_complete_event_unknown_event(store, notifier):
    with pytest.raises(EventNotFound):
        complete_event(store, notifier, "missing")


def test_complete_event_lost_race_writes_nothing(store, notifier, make_event, monkeypatch):
    detail = make_event()

    # Another request flips the status between our read and our conditional update.
    monkeypatch.setattr(store, "set_event_status", lambda *args, **kwargs: False)

    with pytest.raises(AlreadyCompleted):
        complete_event(store, notifier, detail.id)

    assert all(p.assigned_to_id is None for p in store.list_participants(detail.id))
    assert notifier.calls == []


def test_complete_event_rolls_back_when_a_link_fails(store, notifier, make_event, monkeypatch):
    detail = make_event()
    calls = []
    original = store.set_assignment

    def flaky(giver_id, receiver_id):
        calls.append(giver_id)
        if len(calls) == 2:
            raise PersistenceFailure("disk full")
        original(giver_id, receiver_id)

    monkeypatch.setattr(store, "set_assignment", flaky)

    with pytest.raises(PersistenceFailure):
        complete_event(store, notifier, detail.id)

    assert store.get_event(detail.id).status == EventStatus.PENDING
    assert all(p.assigned_to_id is None for p in store.list_participants(detail.id))


def test_complete_event_notifies_after_commit(store, notifier, make_event):
    notifier.succeed = lambda contact: contact != "bob@example.com"
    detail = make_event(emails={"Alice": "alice@example.com", "Bob": "bob@example.com"})

    result = complete_event(store, notifier, detail.id)

    assert result.notifications.to_dict() == {"sent": 1, "failed": 1, "skipped": 1}
    assert {call[1] for call in notifier.calls} == {"completion"}
    # A failed email leaves the draw in place.
    assert store.get_event(detail.id).status == EventStatus.COMPLETED


def test_completion_payload_does_not_carry_recipient(store, notifier, make_event):
    detail = make_event(emails={"Alice": "alice@example.com"})

    complete_event(store, notifier, detail.id)

    (_, _, payload), = notifier.calls
    assert set(payload) == {"participant_name", "event_name", "access_code", "access_url"}


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'gifts.db'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False, "timeout": 30}},
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _seed(app, names):
    with app.app_context():
        detail = create_event(EventStore(db.session), "Race", [ParticipantInput(n) for n in names])
        return detail.id


def _run_together(app, *operations):
    """Run each operation in its own thread, app context and session, released at once."""
    barrier = threading.Barrier(len(operations))
    results = [None] * len(operations)

    def run(index, operation):
        with app.app_context():
            store = EventStore(db.session)
            barrier.wait()
            try:
                operation(store)
                results[index] = "ok"
            except AlreadyCompleted:
                results[index] = "already"
            except Exception as e:
                results[index] = repr(e)

    threads = [threading.Thread(target=run, args=(i, op)) for i, op in enumerate(operations)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


def _assignments(app, event_id):
    with app.app_context():
        store = EventStore(db.session)
        return store.get_event(event_id).status, {
            p.id: p.assigned_to_id for p in store.list_participants(event_id)
        }


def _complete(event_id):
    return lambda store: complete_event(store, current_notifier(), event_id)


@pytest.mark.parametrize("round_", range(3))
def test_concurrent_completions_have_one_winner(file_app, round_):
    event_id = _seed(file_app, [f"Guest {i}" for i in range(20)])

    results = _run_together(file_app, _complete(event_id), _complete(event_id))

    assert sorted(results) == ["already", "ok"]
    status, mapping = _assignments(file_app, event_id)
    assert status == EventStatus.COMPLETED
    _assert_single_cycle(mapping)


def test_participant_added_during_completion_is_drawn_or_refused(file_app):
    event_id = _seed(file_app, ["Alice", "Bob", "Carol"])

    add_result, complete_result = _run_together(
        file_app,
        lambda store: add_participant(store, event_id, "Late"),
        _complete(event_id),
    )

    assert complete_result == "ok"
    assert add_result in ("ok", "already")
    status, mapping = _assignments(file_app, event_id)
    assert status == EventStatus.COMPLETED
    assert len(mapping) == (4 if add_result == "ok" else 3)
    assert all(receiver is not None for receiver in mapping.values())
    _assert_single_cycle(mapping)
