# Overview: Service-layer operations for the item catalog; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateCodeError, NotFoundError, ValidationError
from ..extensions import db, item_locks
from ..models import Item
from ..models.catalog import ITEM_STATUSES, STATUS_INSIDE
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, enforce_rules_item, normalize_code, validate_payload
from .concurrency import lock_for_update, run_with_retry_or_busy
"""
Item Catalog Invariants (authoritative)

- code is normalized (trim + upper-case) before uniqueness checks and lookups.
- code never changes after creation; an update carrying a different code
  is rejected, an update repeating the current code is accepted.
- status / checkout_person / project_name / last_updated are owned by
  transition_service and are not writable here.
- update and delete hold the item's lock so they never interleave with a
  transition on the same item.
- delete is a hard delete; ledger rows keep their snapshots.
"""


ITEM_ALIASES = {
    "imageRef": "image_ref",
    "image": "image_ref",
}

ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "category", "description", "image_ref"},
    required_on_create={"code", "name", "category"},
    aliases=ITEM_ALIASES,
)

ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "category", "description", "image_ref"},
    aliases=ITEM_ALIASES,
)

SORT_COLUMNS = {
    "code": Item.code,
    "name": Item.name,
    "category": Item.category,
    "status": Item.status,
    "last_updated": Item.last_updated,
}


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found", item_id=item_id)
    return item


def get_by_code(code) -> Item:
    normalized = normalize_code(code)
    item = db.session.query(Item).filter_by(code=normalized).first()
    if item is None:
        raise NotFoundError(f"Item {normalized} not found", code=normalized)
    return item


def create_item(payload: dict) -> Item:
    """
    Create a catalog item. Initial status is Inside.

    Raises ValidationError (with field detail) or DuplicateCodeError.
    """
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_CREATE_POLICY, partial=False)
    enforce_rules_item(patch)

    code = patch["code"]
    if db.session.query(Item.id).filter_by(code=code).first() is not None:
        raise DuplicateCodeError(f"Item code {code} already exists", code=code)

    now = utcnow()
    item = Item(
        code=code,
        name=patch["name"],
        category=patch["category"],
        description=patch.get("description"),
        image_ref=patch.get("image_ref"),
        status=STATUS_INSIDE,
        checkout_person=None,
        project_name=None,
        last_updated=now,
        created_at=now,
    )
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent create of the same code
        db.session.rollback()
        raise DuplicateCodeError(f"Item code {code} already exists", code=code) from exc
    return item


def update_item(item_id: int, payload: dict) -> Item:
    """
    Update descriptive fields of an item.

    Raises NotFoundError, or ValidationError when the payload tries to
    change the code or touch a non-writable field.
    """
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_UPDATE_POLICY, partial=True)
    enforce_rules_item(patch)

    item = get_item(item_id)
    code = item.code
    if "code" in patch:
        if patch.pop("code") != code:
            raise ValidationError("code cannot be changed after creation", field="code")

    with item_locks.hold(code):
        def _op():
            locked = lock_for_update(db.session.query(Item).filter_by(id=item_id)).populate_existing().first()
            if locked is None:
                raise NotFoundError(f"Item {item_id} not found", item_id=item_id)
            for key, value in patch.items():
                setattr(locked, key, value)
            db.session.commit()
            return locked

        return run_with_retry_or_busy(_op, key=code)


def delete_item(item_id: int) -> None:
    """Hard delete. Ledger history for the item is kept."""
    code = get_item(item_id).code

    with item_locks.hold(code):
        def _op():
            locked = lock_for_update(db.session.query(Item).filter_by(id=item_id)).populate_existing().first()
            if locked is None:
                raise NotFoundError(f"Item {item_id} not found", item_id=item_id)
            db.session.delete(locked)
            db.session.commit()

        run_with_retry_or_busy(_op, key=code)


def _escape_like(text: str) -> str:
    """Make `%`, `_` and `\\` match literally in a LIKE pattern."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _item_query(*, status: str | None = None, category: str | None = None, search: str | None = None):
    if status is not None and status not in ITEM_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ITEM_STATUSES)}", field="status")

    q = db.session.query(Item)
    if status is not None:
        q = q.filter(Item.status == status)
    if category:
        q = q.filter(Item.category == category)
    if search:
        pattern = f"%{_escape_like(search.strip().lower())}%"
        q = q.filter(or_(
            func.lower(Item.name).like(pattern, escape="\\"),
            func.lower(Item.code).like(pattern, escape="\\"),
            func.lower(func.coalesce(Item.checkout_person, "")).like(pattern, escape="\\"),
            func.lower(func.coalesce(Item.project_name, "")).like(pattern, escape="\\"),
        ))
    return q


def list_items(
    *,
    status: str | None = None,
    category: str | None = None,
    search: str | None = None,
    sort: str | None = None,
) -> list[Item]:
    """
    Filtered catalog listing.

    sort: a column name from SORT_COLUMNS, "-" prefix for descending.
    Without sort the order is by code.
    """
    q = _item_query(status=status, category=category, search=search)

    if sort:
        descending = sort.startswith("-")
        column = SORT_COLUMNS.get(sort.lstrip("-"))
        if column is None:
            raise ValidationError(f"sort must be one of: {', '.join(SORT_COLUMNS)}", field="sort")
        q = q.order_by(column.desc() if descending else column.asc(), Item.id.asc())
    else:
        q = q.order_by(Item.code.asc())

    return q.all()


def list_categories() -> list[str]:
    rows = db.session.query(Item.category).distinct().order_by(Item.category.asc()).all()
    return [row[0] for row in rows]
