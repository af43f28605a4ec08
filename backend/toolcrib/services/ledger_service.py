# Overview: Service-layer operations for ledger; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..errors import ValidationError
from ..extensions import db
from ..models import Item, Transaction, User
from ..models.ledger import TRANSACTION_ACTIONS
"""
Transaction Ledger Invariants (authoritative)

- Append-only log of item transitions; append_transaction() is the only write.
- No domain logic here: legality of a transition is decided by
  transition_service before it calls append.
- Entries are written inside the same DB transaction as the item status
  change they record; the caller commits both together.
- Reads order by timestamp then id, newest first.
- Date filters are inclusive on both ends.
"""


MAX_QUERY_LIMIT = 1000
RECENT_DEFAULT_LIMIT = 10


def append_transaction(
    *,
    item: Item,
    action: str,
    user: User | None,
    occurred_at: datetime,
    checkout_person: str | None = None,
    project_name: str | None = None,
    notes: Optional[str] = None,
) -> Transaction:
    """
    Append one ledger entry.

    - Copies item code/name and user name at write time.
    - Flushes (assigning an id) but does not commit.
    """
    if action not in TRANSACTION_ACTIONS:
        raise ValidationError(f"action must be one of: {', '.join(TRANSACTION_ACTIONS)}", field="action")

    entry = Transaction(
        item_id=item.id,
        item_code=item.code,
        item_name=item.name,
        action=action,
        user_id=user.id if user else None,
        user_name=user.name if user else None,
        checkout_person=checkout_person,
        project_name=project_name,
        notes=notes,
        timestamp=occurred_at,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def _newest_first(query):
    return query.order_by(Transaction.timestamp.desc(), Transaction.id.desc())


def query_transactions(
    *,
    action: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    item_id: int | None = None,
    item_code: str | None = None,
    user_id: int | None = None,
    limit: int | None = None,
) -> list[Transaction]:
    """Filtered ledger view, newest first, at most MAX_QUERY_LIMIT rows."""
    if action is not None and action not in TRANSACTION_ACTIONS:
        raise ValidationError(f"action must be one of: {', '.join(TRANSACTION_ACTIONS)}", field="action")
    if start is not None and end is not None and start > end:
        raise ValidationError("start_date must not be after end_date", field="start_date")

    q = db.session.query(Transaction)
    if action is not None:
        q = q.filter(Transaction.action == action)
    if start is not None:
        q = q.filter(Transaction.timestamp >= start)
    if end is not None:
        q = q.filter(Transaction.timestamp <= end)
    if item_id is not None:
        q = q.filter(Transaction.item_id == item_id)
    if item_code is not None:
        q = q.filter(Transaction.item_code == item_code)
    if user_id is not None:
        q = q.filter(Transaction.user_id == user_id)

    limit = MAX_QUERY_LIMIT if limit is None else max(1, min(limit, MAX_QUERY_LIMIT))
    return _newest_first(q).limit(limit).all()


def recent_transactions(limit: int = RECENT_DEFAULT_LIMIT) -> list[Transaction]:
    """Most recent `limit` entries, newest first."""
    return _newest_first(db.session.query(Transaction)).limit(max(1, min(limit, MAX_QUERY_LIMIT))).all()


def item_history(item_id: int) -> list[Transaction]:
    """Every entry for one item (including deleted items), newest first."""
    return query_transactions(item_id=item_id)


def latest_for_item(item_id: int) -> Transaction | None:
    return _newest_first(db.session.query(Transaction).filter(Transaction.item_id == item_id)).first()
