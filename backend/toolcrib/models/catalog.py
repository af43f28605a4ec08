from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


STATUS_INSIDE = "Inside"
STATUS_OUTSIDE = "Outside"
ITEM_STATUSES = (STATUS_INSIDE, STATUS_OUTSIDE)


class Item(db.Model):
    """
    A trackable physical asset.

    CODE DESIGN DECISION:
    - code is trimmed and upper-cased before it is stored or looked up
    - code is assigned at creation and never changes
    - uniqueness is enforced by the database (uq_items_code)

    STATUS:
    - status, checkout_person, project_name and last_updated are written
      only by transition_service; catalog edits never touch them
    - checkout_person/project_name are set iff status == "Outside"

    version_id is the SQLAlchemy optimistic-locking counter: an UPDATE from a
    writer holding a stale row fails with StaleDataError instead of silently
    overwriting a concurrent transition.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_items_code"),
        db.Index("ix_items_status_category", "status", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    # Opaque reference to an externally stored image (URL or blob key)
    image_ref = db.Column(db.String(1024), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_INSIDE, index=True)
    checkout_person = db.Column(db.String(255), nullable=True)
    project_name = db.Column(db.String(255), nullable=True)

    # Time of the last status change (creation counts as the first)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} code={self.code!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "image_ref": self.image_ref,
            "status": self.status,
            "checkout_person": self.checkout_person,
            "project_name": self.project_name,
            "last_updated": to_utc_z(self.last_updated),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
