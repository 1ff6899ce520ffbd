"""
Costing engine: weighted average cost and stock valuation.
"""

from types import SimpleNamespace

import pytest

from storeledger.models import Procurement
from storeledger.services.costing_service import (
    compute_cost,
    get_cost_summaries,
    get_cost_summary,
    get_inventory_valuation,
    weighted_average,
)


def _row(qty, unit_cost):
    return SimpleNamespace(quantity_purchased=qty, unit_cost_price=unit_cost)


class TestWeightedAverage:

    @pytest.mark.parametrize(
        "total_cost,total_units,expected",
        [
            (1000, 10, 100),
            (5, 2, 3),      # 2.5 rounds half up
            (7, 3, 2),      # 2.33
            (8, 3, 3),      # 2.67
            (0, 0, 0),
            (500, 0, 0),
        ],
    )
    def test_rounding(self, total_cost, total_units, expected):
        assert weighted_average(total_cost, total_units) == expected

    def test_no_procurements_is_zero(self):
        summary = compute_cost([], current_quantity=12)
        assert summary.weighted_average_cost == 0
        assert summary.stock_value == 0

    def test_mixed_purchases(self):
        # (10*100 + 5*130) / 15 = 110
        summary = compute_cost([_row(10, 100), _row(5, 130)], current_quantity=7)
        assert summary.weighted_average_cost == 110
        assert summary.stock_value == 770

    def test_stock_value_uses_current_quantity_not_purchased(self):
        summary = compute_cost([_row(4, 250)], current_quantity=0)
        assert summary.weighted_average_cost == 250
        assert summary.stock_value == 0

    def test_to_dict(self):
        assert compute_cost([_row(2, 50)], current_quantity=3).to_dict() == {
            "weighted_average_cost": 50,
            "stock_value": 150,
        }


class TestCostFromStore:

    def _procure(self, db_session, product, supplier, qty, unit_cost):
        db_session.add(Procurement(
            supplier_id=supplier.id,
            product_id=product.id,
            quantity_purchased=qty,
            unit_cost_price=unit_cost,
            total_cost=qty * unit_cost,
        ))
        db_session.commit()

    def test_sql_summary_matches_pure_computation(self, db_session, product, supplier):
        self._procure(db_session, product, supplier, 3, 101)
        self._procure(db_session, product, supplier, 4, 90)

        summary = get_cost_summary(product)
        expected = compute_cost(product.procurements, product.quantity)
        assert summary == expected
        # (303 + 360) / 7 = 94.71
        assert summary.weighted_average_cost == 95

    def test_batch_summaries(self, db_session, make_product, supplier):
        with_history = make_product(name="Ryzen 7", quantity=2)
        without_history = make_product(name="Case Fan", quantity=30)
        self._procure(db_session, with_history, supplier, 2, 3000)

        summaries = get_cost_summaries([with_history, without_history])
        assert summaries[with_history.id].stock_value == 6000
        assert summaries[without_history.id].weighted_average_cost == 0
        assert get_cost_summaries([]) == {}

    def test_inventory_valuation(self, db_session, make_product, supplier):
        a = make_product(name="A", quantity=2)
        b = make_product(name="B", quantity=5)
        self._procure(db_session, a, supplier, 2, 100)
        self._procure(db_session, b, supplier, 10, 20)

        valuation = get_inventory_valuation()
        assert valuation == {
            "product_count": 2,
            "total_units": 7,
            "total_stock_value": 2 * 100 + 5 * 20,
        }
