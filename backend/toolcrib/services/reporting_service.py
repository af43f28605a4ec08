# Overview: Service-layer operations for reporting; read-only aggregates over items and the ledger.

from __future__ import annotations

import csv
import io
from typing import Iterable

from sqlalchemy import case, func

from ..extensions import db
from ..models import Item, Transaction
from ..models.catalog import STATUS_INSIDE, STATUS_OUTSIDE
from ..time_utils import to_utc_z
from .catalog_service import _item_query
from .ledger_service import RECENT_DEFAULT_LIMIT, recent_transactions


CSV_HEADERS = [
    "Date",
    "Item Code",
    "Item Name",
    "Action",
    "User",
    "Checkout Person",
    "Project Name",
    "Notes",
]


def category_breakdown() -> list[dict]:
    """Per-category totals, ordered by category name."""
    rows = (
        db.session.query(
            Item.category,
            func.count(Item.id),
            func.sum(case((Item.status == STATUS_INSIDE, 1), else_=0)),
            func.sum(case((Item.status == STATUS_OUTSIDE, 1), else_=0)),
        )
        .group_by(Item.category)
        .order_by(Item.category.asc())
        .all()
    )
    return [
        {
            "category": category,
            "total": int(total or 0),
            "inside": int(inside or 0),
            "outside": int(outside or 0),
        }
        for category, total, inside, outside in rows
    ]


def dashboard_stats() -> dict:
    """
    Dashboard summary.

    Counts are computed in one read; they always satisfy
    total_items == inside_count + outside_count.
    """
    total, inside, outside = db.session.query(
        func.count(Item.id),
        func.sum(case((Item.status == STATUS_INSIDE, 1), else_=0)),
        func.sum(case((Item.status == STATUS_OUTSIDE, 1), else_=0)),
    ).one()

    return {
        "total_items": int(total or 0),
        "inside_count": int(inside or 0),
        "outside_count": int(outside or 0),
        "recent_transactions": [t.to_dict() for t in recent_transactions(RECENT_DEFAULT_LIMIT)],
        "category_breakdown": category_breakdown(),
    }


def checked_out_view(*, search: str | None = None, category: str | None = None) -> list[Item]:
    """Items currently Outside, oldest checkout first."""
    q = _item_query(status=STATUS_OUTSIDE, category=category, search=search)
    return q.order_by(Item.last_updated.asc(), Item.code.asc()).all()


def transactions_csv(rows: Iterable[Transaction]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADERS)
    for t in rows:
        writer.writerow([
            to_utc_z(t.timestamp),
            t.item_code,
            t.item_name,
            t.action,
            t.user_name or "",
            t.checkout_person or "",
            t.project_name or "",
            t.notes or "",
        ])
    return buf.getvalue()
