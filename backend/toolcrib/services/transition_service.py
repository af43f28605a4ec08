# Overview: Service-layer operations for check-in/check-out; encapsulates business logic and database work.

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable

from flask import current_app

from ..errors import BusyError, InvalidTransitionError, NotFoundError, ServiceError, ValidationError
from ..extensions import db, item_locks
from ..models import Item, Transaction, User
from ..models.catalog import STATUS_INSIDE, STATUS_OUTSIDE
from ..models.ledger import ACTION_CHECK_IN, ACTION_CHECK_OUT
from ..time_utils import utcnow
from ..validation import normalize_code
from .concurrency import lock_for_update, run_with_retry_or_busy
from .ledger_service import append_transaction
"""
Transition Engine Invariants (authoritative)

State machine, per item:
    Inside  --CheckOut-->  Outside
    Outside --CheckIn-->   Inside
Anything else is an InvalidTransition carrying the item's current status.

Atomicity:
- Read status, validate, write status, append ledger entry and commit run
  as one unit while holding the item's keyed lock (extensions.item_locks).
  Transitions on the same code are therefore linearizable; different codes
  never wait on each other.
- The row is also read FOR UPDATE and versioned (Item.version_id), so a
  writer in another process is detected as stale data; the unit is rolled
  back, retried and re-validated against the fresh status.
- Lock waits are bounded by ITEM_LOCK_TIMEOUT_SECONDS -> BusyError.
- Rejections write nothing: no status change, no ledger entry.

Batches:
- Each code is an independent transition; a failure never rolls back or
  stops its siblings. Results come back in input order.
- A cancel event stops the batch between items; committed items stay.
"""


REQUIRED_STATUS = {
    ACTION_CHECK_OUT: STATUS_INSIDE,
    ACTION_CHECK_IN: STATUS_OUTSIDE,
}

MAX_BATCH_SIZE = 200
MAX_NOTES_LENGTH = 2000
MAX_PARTY_LENGTH = 255


@dataclass
class TransitionOutcome:
    item: Item
    transaction: Transaction

    def to_dict(self) -> dict:
        return {
            "item": self.item.to_dict(),
            "transaction": self.transaction.to_dict(),
        }


@dataclass
class BatchItemResult:
    """Per-code outcome of a batch. status is success, failed or skipped."""
    code: str
    status: str
    outcome: TransitionOutcome | None = None
    error: ServiceError | None = None

    @property
    def success(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        body = {"code": self.code, "status": self.status, "success": self.success}
        if self.outcome is not None:
            body.update(self.outcome.to_dict())
        if self.error is not None:
            body["error"] = self.error.to_dict()
        return body


def _clean_notes(notes) -> str | None:
    if notes is None:
        return None
    cleaned = str(notes).strip()
    if len(cleaned) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes exceeds max length {MAX_NOTES_LENGTH}", field="notes")
    return cleaned or None


def _clean_checkout_party(checkout_person, project_name) -> tuple[str, str]:
    person = str(checkout_person or "").strip()
    project = str(project_name or "").strip()

    problems = {}
    if not person:
        problems["checkout_person"] = "checkout_person is required"
    elif len(person) > MAX_PARTY_LENGTH:
        problems["checkout_person"] = f"checkout_person exceeds max length {MAX_PARTY_LENGTH}"
    if not project:
        problems["project_name"] = "project_name is required"
    elif len(project) > MAX_PARTY_LENGTH:
        problems["project_name"] = f"project_name exceeds max length {MAX_PARTY_LENGTH}"

    if problems:
        raise ValidationError(next(iter(problems.values())), fields=problems)
    return person, project


def _apply_transition(
    code: str,
    action: str,
    *,
    user: User | None,
    notes: str | None,
    checkout_person: str | None = None,
    project_name: str | None = None,
    lock_timeout: float | None = None,
) -> TransitionOutcome:
    required = REQUIRED_STATUS[action]

    def _op():
        item = (
            lock_for_update(db.session.query(Item).filter_by(code=code))
            .populate_existing()
            .first()
        )
        if item is None:
            raise NotFoundError(f"Item {code} not found", code=code)

        if item.status != required:
            raise InvalidTransitionError(
                f"Item {code} is already {item.status}",
                code=code,
                current_status=item.status,
                action=action,
            )

        now = utcnow()
        if action == ACTION_CHECK_OUT:
            item.status = STATUS_OUTSIDE
            item.checkout_person = checkout_person
            item.project_name = project_name
            entry_person, entry_project = checkout_person, project_name
        else:
            # The check-in entry records the loan it closes
            entry_person, entry_project = item.checkout_person, item.project_name
            item.status = STATUS_INSIDE
            item.checkout_person = None
            item.project_name = None
        item.last_updated = now

        entry = append_transaction(
            item=item,
            action=action,
            user=user,
            occurred_at=now,
            checkout_person=entry_person,
            project_name=entry_project,
            notes=notes,
        )
        db.session.commit()
        return TransitionOutcome(item=item, transaction=entry)

    try:
        with item_locks.hold(code, timeout=lock_timeout):
            outcome = run_with_retry_or_busy(_op, key=code)
    except BusyError:
        current_app.logger.warning("%s %s rejected: item busy", action, code)
        raise

    current_app.logger.info(
        "%s %s by %s", action, code, user.name if user else "system"
    )
    return outcome


def check_out(
    code,
    *,
    user: User | None,
    checkout_person,
    project_name,
    notes=None,
    lock_timeout: float | None = None,
) -> TransitionOutcome:
    """
    Move an item Inside -> Outside.

    Raises ValidationError, NotFoundError, InvalidTransitionError or BusyError.
    """
    normalized = normalize_code(code)
    person, project = _clean_checkout_party(checkout_person, project_name)
    return _apply_transition(
        normalized,
        ACTION_CHECK_OUT,
        user=user,
        notes=_clean_notes(notes),
        checkout_person=person,
        project_name=project,
        lock_timeout=lock_timeout,
    )


def check_in(code, *, user: User | None, notes=None, lock_timeout: float | None = None) -> TransitionOutcome:
    """
    Move an item Outside -> Inside.

    Raises ValidationError, NotFoundError, InvalidTransitionError or BusyError.
    """
    normalized = normalize_code(code)
    return _apply_transition(
        normalized,
        ACTION_CHECK_IN,
        user=user,
        notes=_clean_notes(notes),
        lock_timeout=lock_timeout,
    )


def _validate_codes(codes) -> list:
    if isinstance(codes, (str, bytes)) or not isinstance(codes, Iterable):
        raise ValidationError("codes must be a list of item codes", field="codes")
    codes = list(codes)
    if not codes:
        raise ValidationError("codes must contain at least one item code", field="codes")
    if len(codes) > MAX_BATCH_SIZE:
        raise ValidationError(f"codes cannot contain more than {MAX_BATCH_SIZE} entries", field="codes")
    return codes


def _run_batch(codes, transition, cancel_event: threading.Event | None) -> list[BatchItemResult]:
    results: list[BatchItemResult] = []
    for raw in codes:
        label = str(raw).strip().upper() if raw is not None else ""
        if cancel_event is not None and cancel_event.is_set():
            results.append(BatchItemResult(code=label, status="skipped"))
            continue
        try:
            outcome = transition(raw)
        except ServiceError as exc:
            db.session.rollback()
            results.append(BatchItemResult(code=label, status="failed", error=exc))
        else:
            results.append(BatchItemResult(code=outcome.item.code, status="success", outcome=outcome))
    return results


def batch_check_out(
    codes,
    *,
    user: User | None,
    checkout_person,
    project_name,
    notes=None,
    cancel_event: threading.Event | None = None,
) -> list[BatchItemResult]:
    """
    Check out several items "together" (best effort, not a multi-item transaction).

    The shared checkout_person/project_name are validated once up front;
    per-code failures are reported in the result list.
    """
    codes = _validate_codes(codes)
    person, project = _clean_checkout_party(checkout_person, project_name)
    cleaned_notes = _clean_notes(notes)

    def _one(code):
        return _apply_transition(
            normalize_code(code),
            ACTION_CHECK_OUT,
            user=user,
            notes=cleaned_notes,
            checkout_person=person,
            project_name=project,
        )

    return _run_batch(codes, _one, cancel_event)


def batch_check_in(
    codes,
    *,
    user: User | None,
    notes=None,
    cancel_event: threading.Event | None = None,
) -> list[BatchItemResult]:
    """Check in several items; see batch_check_out()."""
    codes = _validate_codes(codes)
    cleaned_notes = _clean_notes(notes)

    def _one(code):
        return _apply_transition(
            normalize_code(code),
            ACTION_CHECK_IN,
            user=user,
            notes=cleaned_notes,
        )

    return _run_batch(codes, _one, cancel_event)


def summarize_batch(results: list[BatchItemResult]) -> dict:
    return {
        "total": len(results),
        "succeeded": sum(1 for r in results if r.status == "success"),
        "failed": sum(1 for r in results if r.status == "failed"),
        "skipped": sum(1 for r in results if r.status == "skipped"),
    }
