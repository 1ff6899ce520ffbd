# Overview: Weighted average cost and stock valuation derived from procurement history.

"""
Costing Engine

Pure computation over a product's procurement rows:

    weighted_average_cost = round_half_up(sum(unit_cost * qty) / sum(qty))
    stock_value           = current_quantity * weighted_average_cost

WAC is 0 when there is no procurement quantity. Nothing here is cached or
stored: procurement history can be corrected, so every read of a product
recomputes its cost.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import Procurement, Product


@dataclass(frozen=True)
class CostSummary:
    weighted_average_cost: int
    stock_value: int

    def to_dict(self) -> dict:
        return {
            "weighted_average_cost": self.weighted_average_cost,
            "stock_value": self.stock_value,
        }


def weighted_average(total_cost: int, total_units: int) -> int:
    """Integer division rounded half-up; 0 when there are no units."""
    if total_units <= 0:
        return 0
    return (total_cost + (total_units // 2)) // total_units


def compute_cost(procurements: Iterable, current_quantity: int) -> CostSummary:
    """
    Derive WAC and stock value from procurement-like rows.

    Each row needs ``quantity_purchased`` and ``unit_cost_price``.
    """
    total_units = 0
    total_cost = 0
    for p in procurements:
        total_units += p.quantity_purchased
        total_cost += p.unit_cost_price * p.quantity_purchased

    wac = weighted_average(total_cost, total_units)
    return CostSummary(weighted_average_cost=wac, stock_value=current_quantity * wac)


def get_cost_summary(product: Product) -> CostSummary:
    """Cost summary for one product, aggregated in SQL."""
    row = db.session.query(
        func.coalesce(func.sum(Procurement.quantity_purchased), 0).label("units"),
        func.coalesce(
            func.sum(Procurement.quantity_purchased * Procurement.unit_cost_price),
            0,
        ).label("cost"),
    ).filter(
        Procurement.product_id == product.id,
    ).one()

    wac = weighted_average(int(row.cost or 0), int(row.units or 0))
    return CostSummary(weighted_average_cost=wac, stock_value=product.quantity * wac)


def get_cost_summaries(products: list[Product]) -> dict[int, CostSummary]:
    """Cost summaries for many products in one query."""
    if not products:
        return {}

    rows = db.session.query(
        Procurement.product_id,
        func.sum(Procurement.quantity_purchased).label("units"),
        func.sum(Procurement.quantity_purchased * Procurement.unit_cost_price).label("cost"),
    ).filter(
        Procurement.product_id.in_([p.id for p in products]),
    ).group_by(Procurement.product_id).all()

    totals = {r.product_id: (int(r.cost or 0), int(r.units or 0)) for r in rows}

    summaries = {}
    for p in products:
        cost, units = totals.get(p.id, (0, 0))
        wac = weighted_average(cost, units)
        summaries[p.id] = CostSummary(weighted_average_cost=wac, stock_value=p.quantity * wac)
    return summaries


def get_inventory_valuation() -> dict:
    """Total stock value across the catalogue."""
    products = db.session.query(Product).order_by(Product.id.asc()).all()
    summaries = get_cost_summaries(products)

    return {
        "product_count": len(products),
        "total_units": sum(p.quantity for p in products),
        "total_stock_value": sum(s.stock_value for s in summaries.values()),
    }
