from __future__ import annotations

from ..extensions import db
from storeledger.time_utils import to_utc_z


class CapitalEntry(db.Model):
    """Append-only log of capital movements. Never affects stock."""
    __tablename__ = "capital_entries"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    amount = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(32), nullable=False, default="INJECTION")
    description = db.Column(db.Text, nullable=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=False, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    admin = db.relationship("Admin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "type": self.type,
            "description": self.description,
            "admin_id": self.admin_id,
            "admin_name": self.admin.name if self.admin else None,
            "date": to_utc_z(self.date),
        }
