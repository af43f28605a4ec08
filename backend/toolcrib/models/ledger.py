from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ACTION_CHECK_OUT = "CheckOut"
ACTION_CHECK_IN = "CheckIn"
TRANSACTION_ACTIONS = (ACTION_CHECK_IN, ACTION_CHECK_OUT)


class Transaction(db.Model):
    """
    Append-only ledger of item transitions.

    INVARIANTS:
    - Rows are inserted by ledger_service.append_transaction() only; never
      updated or deleted.
    - item_code, item_name and user_name are snapshots taken at write time,
      so history stays readable after the item or user changes or is deleted.
    - item_id / user_id are plain indexed integers (no foreign keys) for the
      same reason.
    - Ordering is (timestamp, id); id breaks ties between entries written in
      the same clock tick.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_item_timestamp", "item_id", "timestamp"),
        db.Index("ix_transactions_action_timestamp", "action", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_id = db.Column(db.Integer, nullable=False, index=True)
    item_code = db.Column(db.String(64), nullable=False, index=True)
    item_name = db.Column(db.String(255), nullable=False)

    action = db.Column(db.String(16), nullable=False)

    user_id = db.Column(db.Integer, nullable=True, index=True)
    user_name = db.Column(db.String(64), nullable=True)

    checkout_person = db.Column(db.String(255), nullable=True)
    project_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    timestamp = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} item={self.item_code!r} action={self.action!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_code": self.item_code,
            "item_name": self.item_name,
            "action": self.action,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "checkout_person": self.checkout_person,
            "project_name": self.project_name,
            "notes": self.notes,
            "timestamp": to_utc_z(self.timestamp),
        }
