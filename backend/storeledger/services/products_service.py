# Overview: Product catalogue operations; quantity changes go through the stock mutator.

"""
Products Service

Product rows are served together with their live cost figures (weighted
average cost and stock value), recomputed from procurement history on every
read.

Quantity is never written directly here:
- a new product with an initial quantity is created at 0 and restocked by
  an initial Procurement in the same transaction
- a quantity in an update patch becomes a stock delta; increases are
  restricted to super_admin with password re-authentication
"""

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from ..models import Category, OrderItem, Procurement, Product, Supplier, WholesaleOrderItem
from ..roles import AdminRole, PRODUCT_MANAGERS
from ..validation import enforce_rules_product, require_positive_int
from .auth_service import reauthenticate
from .concurrency import run_in_transaction
from .costing_service import CostSummary, get_cost_summaries, get_cost_summary
from .procurement_service import record_procurement
from .stock_service import StockReason, adjust_stock, get_product_for_update

PRODUCT_MUTABLE_FIELDS = {"category_id", "name", "description", "price", "original_price", "badge"}

COST_UNATTRIBUTED = "cost_unattributed"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def serialize_product(product: Product, summary: CostSummary | None = None) -> dict:
    """Product dict with its category name and live cost figures."""
    if summary is None:
        summary = get_cost_summary(product)
    data = product.to_dict()
    data["category_name"] = product.category.name if product.category else None
    data.update(summary.to_dict())
    return data


def _require_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found", details={"category_id": category_id})
    return category


def _require_manager(actor) -> None:
    if actor is None or actor.admin_role not in PRODUCT_MANAGERS:
        raise UnauthorizedError("Only super_admin or editor can manage products")


def list_products(
    *,
    category_id: int | None = None,
    in_stock: bool | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Public product listing, limited to active categories.

    Args:
        category_id: only products of this category
        in_stock: True/False to filter on availability
        search: case-insensitive match on product name
        page: page number (1-indexed). If None, returns all items.
        per_page: items per page (default 20, max 100)
    """
    base_query = (
        db.session.query(Product)
        .join(Category, Category.id == Product.category_id)
        .filter(Category.active.is_(True))
    )
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    if in_stock is not None:
        base_query = base_query.filter(Product.in_stock.is_(bool(in_stock)))
    if search:
        base_query = base_query.filter(Product.name.ilike(f"%{search.strip()}%"))

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        summaries = get_cost_summaries(products)
        return {
            "items": [serialize_product(p, summaries[p.id]) for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()
    summaries = get_cost_summaries(products)

    return {
        "items": [serialize_product(p, summaries[p.id]) for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def create_product(*, patch: dict, supplier_id, unit_cost_price, actor) -> dict:
    """
    Create a product from a validated patch.

    supplier_id and unit_cost_price are required for every new product. With
    an initial quantity > 0 they become the product's first Procurement,
    recorded in the same transaction as the product row.

    Raises:
        ValidationError: missing cost info, bad prices, in_stock/quantity mismatch
        NotFoundError: unknown category or supplier
    """
    _require_manager(actor)
    patch = dict(patch)
    enforce_rules_product(patch)

    if supplier_id in (None, ""):
        raise ValidationError("supplier_id is required for a new product")
    supplier_id = require_positive_int("supplier_id", supplier_id)
    unit_cost_price = require_positive_int("unit_cost_price", unit_cost_price)

    initial_quantity = patch.pop("quantity", None) or 0
    requested_in_stock = patch.pop("in_stock", None)
    if requested_in_stock is not None and bool(requested_in_stock) != (initial_quantity > 0):
        raise ValidationError("in_stock must match quantity (in stock only when quantity > 0)")

    for key in ("name", "price", "category_id"):
        if patch.get(key) in (None, ""):
            raise ValidationError(f"{key} is required")

    def _op():
        _require_category(patch["category_id"])
        if db.session.get(Supplier, supplier_id) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})

        product = Product(quantity=0, in_stock=False)
        apply_product_patch(product, patch)
        db.session.add(product)
        db.session.flush()

        if initial_quantity > 0:
            record_procurement(
                product_id=product.id,
                supplier_id=supplier_id,
                quantity=initial_quantity,
                unit_cost_price=unit_cost_price,
                actor_admin_id=actor.id,
            )
        return product

    product = run_in_transaction(_op)
    return serialize_product(product)


def update_product(
    product_id: int,
    *,
    patch: dict,
    actor,
    password: str | None = None,
    supplier_id=None,
    unit_cost_price=None,
) -> dict:
    """
    Patch a product; a ``quantity`` in the patch is applied as a stock delta.

    Quantity increases require the super_admin role and the actor's password.
    If supplier_id and unit_cost_price accompany an increase, the delta is
    recorded as a Procurement. Otherwise it is a manual adjustment, and when
    the product has no procurement history the result carries
    ``warnings: ["cost_unattributed"]``.

    Raises:
        NotFoundError: unknown product or category
        UnauthorizedError: increase by a role other than super_admin
        InvalidCredentialsError: missing or wrong password on an increase
        ValidationError: bad values, partial cost info, cost info without an
            increase, in_stock mismatch
    """
    _require_manager(actor)
    patch = dict(patch)
    enforce_rules_product(patch)

    target_quantity = patch.pop("quantity", None)
    requested_in_stock = patch.pop("in_stock", None)

    has_supplier = supplier_id not in (None, "")
    has_cost = unit_cost_price not in (None, "")
    if has_supplier != has_cost:
        raise ValidationError("supplier_id and unit_cost_price must be provided together")
    if has_supplier:
        supplier_id = require_positive_int("supplier_id", supplier_id)
        unit_cost_price = require_positive_int("unit_cost_price", unit_cost_price)
    if has_supplier and target_quantity is None:
        raise ValidationError("supplier_id and unit_cost_price only apply to a quantity increase")

    # Check the password before taking the row lock; bcrypt is slow
    reauthenticated = False
    if target_quantity is not None and target_quantity > get_product(product_id).quantity:
        if actor.admin_role != AdminRole.SUPER_ADMIN:
            raise UnauthorizedError("Only super_admin can increase stock quantity")
        reauthenticate(actor, password)
        reauthenticated = True

    def _op():
        product = get_product_for_update(product_id)
        if "category_id" in patch:
            _require_category(patch["category_id"])

        delta = 0 if target_quantity is None else target_quantity - product.quantity
        resulting = product.quantity + delta
        if requested_in_stock is not None and bool(requested_in_stock) != (resulting > 0):
            raise ValidationError("in_stock must match quantity (in stock only when quantity > 0)")

        if has_supplier and delta <= 0:
            raise ValidationError("supplier_id and unit_cost_price only apply to a quantity increase")

        warnings: list[str] = []

        if delta > 0:
            if actor.admin_role != AdminRole.SUPER_ADMIN:
                raise UnauthorizedError("Only super_admin can increase stock quantity")
            if not reauthenticated:
                # Stock dropped between the pre-check and the lock
                reauthenticate(actor, password)

            if has_supplier:
                if db.session.get(Supplier, supplier_id) is None:
                    raise NotFoundError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
                record_procurement(
                    product_id=product.id,
                    supplier_id=supplier_id,
                    quantity=delta,
                    unit_cost_price=unit_cost_price,
                    actor_admin_id=actor.id,
                )
            else:
                has_history = db.session.query(
                    db.session.query(Procurement).filter_by(product_id=product.id).exists()
                ).scalar()
                adjust_stock(
                    product.id,
                    delta,
                    StockReason.MANUAL_ADJUSTMENT,
                    reference_type="PRODUCT",
                    reference_id=product.id,
                    actor_admin_id=actor.id,
                )
                if not has_history:
                    warnings.append(COST_UNATTRIBUTED)

        elif delta < 0:
            adjust_stock(
                product.id,
                delta,
                StockReason.MANUAL_ADJUSTMENT,
                reference_type="PRODUCT",
                reference_id=product.id,
                actor_admin_id=actor.id,
            )

        apply_product_patch(product, patch)
        db.session.flush()
        return product, warnings

    product, warnings = run_in_transaction(_op)

    result = serialize_product(product)
    if warnings:
        result["warnings"] = warnings
    return result


def delete_product(product_id: int) -> None:
    """
    Delete a product with its procurement and stock movement history.

    Raises ConflictError while any retail or wholesale order item references it.
    """
    def _op():
        product = get_product_for_update(product_id)

        retail_refs = db.session.query(OrderItem).filter_by(product_id=product.id).count()
        wholesale_refs = db.session.query(WholesaleOrderItem).filter_by(product_id=product.id).count()
        if retail_refs or wholesale_refs:
            raise ConflictError(
                f"Cannot delete {product.name}: it is referenced by existing orders",
                details={
                    "product_id": product.id,
                    "order_items": retail_refs,
                    "wholesale_order_items": wholesale_refs,
                },
            )

        db.session.delete(product)

    run_in_transaction(_op)
