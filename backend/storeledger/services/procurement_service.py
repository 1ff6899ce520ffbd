# Overview: Supplier purchases and the privileged cost-correction path.

"""
Procurement Service

Procurement rows are the ledger that every cost figure is derived from.

record_procurement() writes one purchase and restocks the product through
the stock mutator; it never commits, so product creation and manual
increases can reuse it inside their own transaction.

adjust_cost() is the one operation that rewrites history: it revises the
unit cost of the product's earliest procurement (or synthesizes one when
there is none) and records a CostCorrection event next to it.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..errors import NotFoundError, UnauthorizedError, ValidationError
from ..models import CostCorrection, Procurement, Product, Supplier
from ..roles import PRODUCT_MANAGERS
from ..validation import require_positive_int
from storeledger.time_utils import parse_iso_datetime, utcnow
from .auth_service import reauthenticate
from .concurrency import lock_for_update, run_in_transaction
from .stock_service import StockReason, adjust_stock, get_product_for_update

CORRECTION_EARLIEST_REVISED = "EARLIEST_REVISED"
CORRECTION_SYNTHESIZED = "SYNTHESIZED"


def _require_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def _parse_purchase_date(value) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_iso_datetime(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError("purchase_date must be an ISO-8601 date or datetime")
    return parsed


def record_procurement(
    *,
    product_id: int,
    supplier_id: int,
    quantity: int,
    unit_cost_price: int,
    purchase_date: datetime | None = None,
    actor_admin_id: int | None = None,
) -> Procurement:
    """
    Persist a purchase and add its quantity to stock.

    Must run inside the caller's transaction; flushes but never commits.
    """
    procurement = Procurement(
        supplier_id=supplier_id,
        product_id=product_id,
        quantity_purchased=quantity,
        unit_cost_price=unit_cost_price,
        total_cost=quantity * unit_cost_price,
        purchase_date=purchase_date or utcnow(),
        created_by_admin_id=actor_admin_id,
    )
    db.session.add(procurement)
    db.session.flush()

    adjust_stock(
        product_id,
        quantity,
        StockReason.PROCUREMENT,
        reference_type="PROCUREMENT",
        reference_id=procurement.id,
        actor_admin_id=actor_admin_id,
    )
    return procurement


def create_procurement(
    *,
    supplier_id,
    product_id,
    quantity,
    unit_cost_price,
    purchase_date=None,
    actor=None,
) -> Procurement:
    """
    Record a supplier purchase and restock the product atomically.

    Raises:
        ValidationError: missing or non-numeric fields
        NotFoundError: unknown supplier or product
    """
    supplier_id = require_positive_int("supplier_id", supplier_id)
    product_id = require_positive_int("product_id", product_id)
    quantity = require_positive_int("quantity_purchased", quantity)
    unit_cost_price = require_positive_int("unit_cost_price", unit_cost_price)
    purchase_date = _parse_purchase_date(purchase_date)

    def _op():
        _require_supplier(supplier_id)
        get_product_for_update(product_id)
        return record_procurement(
            product_id=product_id,
            supplier_id=supplier_id,
            quantity=quantity,
            unit_cost_price=unit_cost_price,
            purchase_date=purchase_date,
            actor_admin_id=actor.id if actor is not None else None,
        )

    return run_in_transaction(_op)


def list_procurements(*, product_id: int | None = None, supplier_id: int | None = None) -> list[Procurement]:
    """Procurements, newest purchase first."""
    query = db.session.query(Procurement)
    if product_id is not None:
        query = query.filter(Procurement.product_id == product_id)
    if supplier_id is not None:
        query = query.filter(Procurement.supplier_id == supplier_id)
    return query.order_by(Procurement.purchase_date.desc(), Procurement.id.desc()).all()


def get_earliest_procurement(product_id: int, *, for_update: bool = False) -> Procurement | None:
    query = (
        db.session.query(Procurement)
        .filter(Procurement.product_id == product_id)
        .order_by(Procurement.purchase_date.asc(), Procurement.id.asc())
    )
    if for_update:
        query = lock_for_update(query)
    return query.first()


def adjust_cost(
    product_id: int,
    *,
    new_unit_cost,
    actor,
    password: str | None,
    supplier_id=None,
) -> Procurement:
    """
    Correct a product's historical cost basis.

    The acting admin must re-enter their password. When the product has
    procurement history, the earliest-dated row gets the new unit cost and a
    recomputed total. Otherwise a procurement covering the current on-hand
    quantity is synthesized at the new cost; stock is not changed. Either
    way a CostCorrection row records the event.

    Raises:
        ValidationError: bad cost, or no history and nothing on hand
        UnauthorizedError: actor cannot manage products
        InvalidCredentialsError: missing or wrong password
        NotFoundError: unknown product or supplier
    """
    if actor is None or actor.admin_role not in PRODUCT_MANAGERS:
        raise UnauthorizedError("Only super_admin or editor can correct costs")
    new_unit_cost = require_positive_int("unit_cost_price", new_unit_cost)
    if supplier_id not in (None, ""):
        supplier_id = require_positive_int("supplier_id", supplier_id)
    else:
        supplier_id = None

    reauthenticate(actor, password)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

        earliest = get_earliest_procurement(product.id, for_update=True)

        if earliest is not None:
            previous = earliest.unit_cost_price
            earliest.unit_cost_price = new_unit_cost
            earliest.total_cost = earliest.quantity_purchased * new_unit_cost
            kind = CORRECTION_EARLIEST_REVISED
            procurement = earliest
        else:
            if product.quantity <= 0:
                raise ValidationError(
                    f"{product.name} has no procurement history and no stock to attribute a cost to"
                )
            if supplier_id is not None:
                _require_supplier(supplier_id)
            previous = None
            kind = CORRECTION_SYNTHESIZED
            procurement = Procurement(
                supplier_id=supplier_id,
                product_id=product.id,
                quantity_purchased=product.quantity,
                unit_cost_price=new_unit_cost,
                total_cost=product.quantity * new_unit_cost,
                purchase_date=utcnow(),
                created_by_admin_id=actor.id,
            )
            db.session.add(procurement)

        db.session.flush()
        db.session.add(CostCorrection(
            product_id=product.id,
            procurement_id=procurement.id,
            kind=kind,
            previous_unit_cost=previous,
            new_unit_cost=new_unit_cost,
            admin_id=actor.id,
            occurred_at=utcnow(),
        ))
        db.session.flush()
        return procurement

    return run_in_transaction(_op)


def list_cost_corrections(product_id: int) -> list[CostCorrection]:
    return (
        db.session.query(CostCorrection)
        .filter_by(product_id=product_id)
        .order_by(CostCorrection.occurred_at.desc(), CostCorrection.id.desc())
        .all()
    )
