from __future__ import annotations

from ..extensions import db
from storeledger.time_utils import to_utc_z


class Wholesaler(db.Model):
    """Bulk-purchase customer with its own order and payment ledger."""
    __tablename__ = "wholesalers"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }


class WholesaleOrder(db.Model):
    """
    Wholesale order.

    total_amount is recomputed from the items on every write, and status is
    always derived: PAID when total_amount - advance_amount <= 0, else
    PENDING. Nothing sets status directly.
    """
    __tablename__ = "wholesale_orders"
    __table_args__ = (
        db.CheckConstraint("advance_amount >= 0", name="ck_wholesale_orders_advance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    wholesaler_id = db.Column(db.Integer, db.ForeignKey("wholesalers.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)

    total_amount = db.Column(db.Integer, nullable=False, default=0)
    advance_amount = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    created_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    wholesaler = db.relationship("Wholesaler", backref=db.backref("orders", lazy=True, order_by="WholesaleOrder.created_at.desc()"))
    items = db.relationship(
        "WholesaleOrderItem",
        backref="wholesale_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="WholesaleOrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def remaining_amount(self) -> int:
        return self.total_amount - self.advance_amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "wholesaler_id": self.wholesaler_id,
            "wholesaler_name": self.wholesaler.name if self.wholesaler else None,
            "order_number": self.order_number,
            "total_amount": self.total_amount,
            "advance_amount": self.advance_amount,
            "remaining_amount": self.remaining_amount,
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "created_by_admin_id": self.created_by_admin_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class WholesaleOrderItem(db.Model):
    __tablename__ = "wholesale_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_wholesale_items_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_wholesale_items_unit_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    wholesale_order_id = db.Column(db.Integer, db.ForeignKey("wholesale_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "wholesale_order_id": self.wholesale_order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.unit_price * self.quantity,
        }
