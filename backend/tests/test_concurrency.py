"""
Concurrency tests for the transition engine.

Each worker thread runs in its own app context, so it gets its own
database session and connection, like concurrent requests would.
"""

import threading

import pytest

from toolcrib.errors import BusyError, InvalidTransitionError
from toolcrib.extensions import db, item_locks
from toolcrib.models import Item, Transaction, User
from toolcrib.services import transition_service


WORKERS = 8


def _run_workers(app, targets):
    """Start all targets together; return (results, errors) in completion order."""
    results = []
    errors = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(targets))

    def runner(target):
        with app.app_context():
            try:
                barrier.wait()
                outcome = target()
                with lock:
                    results.append(outcome)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=runner, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results, errors


def test_same_item_checkout_exactly_one_wins(app, drill, staff_user, db_session):
    user_id = staff_user.id

    def make_target(n):
        def target():
            user = db.session.get(User, user_id)
            outcome = transition_service.check_out(
                "DRL-01", user=user, checkout_person=f"Person {n}", project_name="Race"
            )
            return outcome.transaction.checkout_person
        return target

    results, errors = _run_workers(app, [make_target(n) for n in range(WORKERS)])

    assert len(results) == 1
    assert len(errors) == WORKERS - 1
    for exc in errors:
        assert isinstance(exc, InvalidTransitionError)
        assert exc.current_status == "Outside"

    db_session.expire_all()
    item = db_session.query(Item).filter_by(code="DRL-01").one()
    assert item.status == "Outside"
    assert item.checkout_person == results[0]
    assert db_session.query(Transaction).count() == 1


def test_mixed_in_and_out_keep_ledger_alternating(app, drill, staff_user, db_session):
    user_id = staff_user.id

    def check_out():
        user = db.session.get(User, user_id)
        return transition_service.check_out("DRL-01", user=user, checkout_person="J", project_name="P").transaction.action

    def check_in():
        user = db.session.get(User, user_id)
        return transition_service.check_in("DRL-01", user=user).transaction.action

    targets = [check_out, check_in] * (WORKERS // 2)
    results, errors = _run_workers(app, targets)

    assert all(isinstance(e, InvalidTransitionError) for e in errors)

    db_session.expire_all()
    history = (
        db_session.query(Transaction)
        .order_by(Transaction.timestamp.asc(), Transaction.id.asc())
        .all()
    )
    assert len(history) == len(results)
    expected = ["CheckOut", "CheckIn"] * len(history)
    assert [t.action for t in history] == expected[:len(history)]

    item = db_session.query(Item).filter_by(code="DRL-01").one()
    final = "Outside" if history and history[-1].action == "CheckOut" else "Inside"
    assert item.status == final


def test_different_items_do_not_block_each_other(app, make_item, staff_user, db_session):
    codes = [f"BOX-{n:02d}" for n in range(WORKERS)]
    for code in codes:
        make_item(code)
    user_id = staff_user.id

    def make_target(code):
        def target():
            user = db.session.get(User, user_id)
            return transition_service.check_out(
                code, user=user, checkout_person="Crew", project_name="Move"
            ).item.code
        return target

    results, errors = _run_workers(app, [make_target(c) for c in codes])

    assert errors == []
    assert sorted(results) == codes

    db_session.expire_all()
    assert db_session.query(Item).filter_by(status="Outside").count() == WORKERS
    assert db_session.query(Transaction).count() == WORKERS


def test_lock_timeout_is_busy(drill, staff_user, db_session):
    with item_locks.hold("DRL-01"):
        with pytest.raises(BusyError) as exc:
            transition_service.check_out(
                "DRL-01",
                user=staff_user,
                checkout_person="J",
                project_name="P",
                lock_timeout=0.05,
            )
    assert exc.value.details["code"] == "DRL-01"

    db_session.expire_all()
    assert db_session.get(Item, drill.id).status == "Inside"
    assert db_session.query(Transaction).count() == 0

    # Lock released: the same call now succeeds
    outcome = transition_service.check_out("DRL-01", user=staff_user, checkout_person="J", project_name="P")
    assert outcome.item.status == "Outside"


def test_busy_over_http(client, staff_headers, drill, monkeypatch):
    monkeypatch.setattr(item_locks, "default_timeout", 0.05)
    with item_locks.hold("DRL-01"):
        resp = client.post(
            "/api/transactions/checkout",
            json={"code": "DRL-01", "checkout_person": "J", "project_name": "P"},
            headers=staff_headers,
        )
    assert resp.status_code == 503
    assert resp.json["kind"] == "Busy"
    assert resp.headers["Retry-After"] == "1"


def test_lock_on_one_item_leaves_others_free(make_item, staff_user):
    make_item("A")
    make_item("B")
    with item_locks.hold("A"):
        outcome = transition_service.check_out(
            "B", user=staff_user, checkout_person="J", project_name="P", lock_timeout=0.05
        )
    assert outcome.item.status == "Outside"


def test_lock_registry_cleans_up(app):
    assert len(item_locks) == 0
    with item_locks.hold("X"):
        assert item_locks.is_held("X")
        assert len(item_locks) == 1
    assert not item_locks.is_held("X")
    assert len(item_locks) == 0
