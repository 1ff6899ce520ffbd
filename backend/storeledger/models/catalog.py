from __future__ import annotations

from ..extensions import db
from storeledger.time_utils import to_utc_z


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(120), nullable=False, unique=True)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data with its on-hand quantity.

    STOCK INVARIANTS:
    - quantity is never negative
    - in_stock == (quantity > 0), enforced by a CHECK constraint
    - quantity changes only through services.stock_service.adjust_stock,
      which writes a StockMovement in the same transaction

    version_id gives optimistic locking on top of SELECT ... FOR UPDATE, so
    two read-check-decrement sequences cannot both commit against the same
    starting quantity.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint("(quantity > 0) = in_stock", name="ck_products_in_stock_matches_quantity"),
        db.CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_category_name", "category_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Sale price in whole currency units
    price = db.Column(db.Integer, nullable=False)
    original_price = db.Column(db.Integer, nullable=True)
    badge = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    in_stock = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "original_price": self.original_price,
            "badge": self.badge,
            "quantity": self.quantity,
            "in_stock": self.in_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """
    Supplier of procured stock.

    Cannot be deleted while it has procurement history.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "city": self.city,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Procurement(db.Model):
    """
    A recorded purchase of stock from a supplier.

    The sequence of procurements for a product is the sole source of truth
    for its weighted average cost. Rows are append-only; the one exception is
    the cost correction path (procurement_service.adjust_cost), which
    rewrites the earliest row and records a CostCorrection.

    supplier_id is only null on rows synthesized by a cost correction for a
    product that had no purchase history.
    """
    __tablename__ = "procurements"
    __table_args__ = (
        db.CheckConstraint("quantity_purchased > 0", name="ck_procurements_quantity_positive"),
        db.CheckConstraint("unit_cost_price > 0", name="ck_procurements_unit_cost_positive"),
        db.CheckConstraint(
            "total_cost = quantity_purchased * unit_cost_price",
            name="ck_procurements_total_cost",
        ),
        db.Index("ix_procurements_product_date", "product_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_purchased = db.Column(db.Integer, nullable=False)
    unit_cost_price = db.Column(db.Integer, nullable=False)
    total_cost = db.Column(db.Integer, nullable=False)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("procurements", lazy=True))
    product = db.relationship(
        "Product",
        backref=db.backref("procurements", lazy=True, cascade="all, delete-orphan"),
    )
    created_by = db.relationship("Admin", foreign_keys=[created_by_admin_id])

    def __repr__(self) -> str:
        return (
            f"<Procurement id={self.id} product_id={self.product_id} "
            f"qty={self.quantity_purchased} unit_cost={self.unit_cost_price}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity_purchased": self.quantity_purchased,
            "unit_cost_price": self.unit_cost_price,
            "total_cost": self.total_cost,
            "purchase_date": to_utc_z(self.purchase_date),
            "created_by_admin_id": self.created_by_admin_id,
            "created_at": to_utc_z(self.created_at),
        }


class CostCorrection(db.Model):
    """
    Historical cost correction event.

    kind:
    - EARLIEST_REVISED: the earliest procurement's unit cost was rewritten
    - SYNTHESIZED: no history existed; a procurement covering the on-hand
      quantity was created at the corrected cost
    """
    __tablename__ = "cost_corrections"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    procurement_id = db.Column(db.Integer, db.ForeignKey("procurements.id"), nullable=False, index=True)
    kind = db.Column(db.String(32), nullable=False)
    previous_unit_cost = db.Column(db.Integer, nullable=True)
    new_unit_cost = db.Column(db.Integer, nullable=False)
    admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship(
        "Product",
        backref=db.backref("cost_corrections", lazy=True, cascade="all, delete-orphan"),
    )
    procurement = db.relationship(
        "Procurement",
        backref=db.backref("corrections", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "procurement_id": self.procurement_id,
            "kind": self.kind,
            "previous_unit_cost": self.previous_unit_cost,
            "new_unit_cost": self.new_unit_cost,
            "admin_id": self.admin_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit of every quantity change.

    Written by the stock mutator in the same transaction as the product
    update, so SUM(delta) per product always equals the change in quantity
    since the first movement.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    delta = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(32), nullable=False, index=True)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    actor_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship(
        "Product",
        backref=db.backref("stock_movements", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "delta": self.delta,
            "quantity_after": self.quantity_after,
            "reason": self.reason,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "actor_admin_id": self.actor_admin_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
