from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import Procurement, Product, Supplier

SUPPLIER_MUTABLE_FIELDS = {"name", "phone", "email", "city", "notes"}


def apply_supplier_patch(s: Supplier, patch: dict) -> None:
    for k, v in patch.items():
        if k not in SUPPLIER_MUTABLE_FIELDS:
            continue
        setattr(s, k, v)


def get_supplier_or_404(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def list_suppliers() -> list[dict]:
    """Suppliers by name, each with its procurement count."""
    rows = (
        db.session.query(Supplier, func.count(Procurement.id))
        .outerjoin(Procurement, Procurement.supplier_id == Supplier.id)
        .group_by(Supplier.id)
        .order_by(Supplier.name.asc(), Supplier.id.asc())
        .all()
    )
    items = []
    for supplier, count in rows:
        data = supplier.to_dict()
        data["procurement_count"] = int(count or 0)
        items.append(data)
    return items


def get_supplier(supplier_id: int) -> dict:
    """
    Supplier detail with a purchase summary.

    summary.products aggregates quantity and spend per product, largest
    spend first.
    """
    supplier = get_supplier_or_404(supplier_id)

    rows = (
        db.session.query(
            Product.id,
            Product.name,
            func.sum(Procurement.quantity_purchased).label("quantity"),
            func.sum(Procurement.total_cost).label("total"),
        )
        .join(Procurement, Procurement.product_id == Product.id)
        .filter(Procurement.supplier_id == supplier.id)
        .group_by(Product.id, Product.name)
        .all()
    )
    products = sorted(
        (
            {"product_id": r.id, "name": r.name, "quantity": int(r.quantity or 0), "total": int(r.total or 0)}
            for r in rows
        ),
        key=lambda p: (-p["total"], p["name"]),
    )

    data = supplier.to_dict()
    data["summary"] = {
        "total_spent": sum(p["total"] for p in products),
        "total_items": sum(p["quantity"] for p in products),
        "unique_products": len(products),
        "products": products,
    }
    return data


def create_supplier(*, patch: dict) -> Supplier:
    supplier = Supplier()
    apply_supplier_patch(supplier, patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, *, patch: dict) -> Supplier:
    supplier = get_supplier_or_404(supplier_id)
    apply_supplier_patch(supplier, patch)
    db.session.commit()
    return supplier


def delete_supplier(supplier_id: int) -> None:
    """Raises ConflictError while the supplier has procurement history."""
    supplier = get_supplier_or_404(supplier_id)

    count = db.session.query(Procurement).filter_by(supplier_id=supplier.id).count()
    if count:
        raise ConflictError(
            f"Cannot delete supplier {supplier.name}: it has {count} procurement(s)",
            details={"supplier_id": supplier.id, "procurement_count": count},
        )

    db.session.delete(supplier)
    db.session.commit()
