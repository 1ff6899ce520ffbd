"""
Procurements and cost corrections.

Procurement rows are the only cost input, so these tests check both the
rows written and the weighted-average cost derived from them.
"""

import pytest

from storeledger.errors import InvalidCredentialsError, NotFoundError, UnauthorizedError, ValidationError
from storeledger.models import CostCorrection, Procurement, Product, StockMovement
from storeledger.services import procurement_service
from storeledger.services.costing_service import get_cost_summary

from conftest import PASSWORD


def _buy(supplier, product, quantity, cost, date):
    return procurement_service.create_procurement(
        supplier_id=supplier.id,
        product_id=product.id,
        quantity=quantity,
        unit_cost_price=cost,
        purchase_date=date,
    )


class TestCreateProcurement:

    def test_restocks_and_records_movement(self, db_session, supplier, make_product, editor):
        product = make_product(quantity=0)

        procurement = procurement_service.create_procurement(
            supplier_id=supplier.id,
            product_id=product.id,
            quantity=5,
            unit_cost_price=4000,
            actor=editor,
        )

        assert procurement.total_cost == 20000
        assert procurement.created_by_admin_id == editor.id
        refreshed = db_session.get(Product, product.id)
        assert refreshed.quantity == 5
        assert refreshed.in_stock is True

        movement = db_session.query(StockMovement).one()
        assert movement.reason == "PROCUREMENT"
        assert movement.reference_type == "PROCUREMENT"
        assert movement.reference_id == procurement.id
        assert movement.delta == 5

    def test_string_numbers_are_accepted(self, db_session, supplier, product):
        procurement = procurement_service.create_procurement(
            supplier_id=str(supplier.id),
            product_id=str(product.id),
            quantity="3",
            unit_cost_price="150",
        )
        assert procurement.quantity_purchased == 3

    @pytest.mark.parametrize(
        "quantity,cost,date",
        [
            (0, 100, None),
            (-2, 100, None),
            (2, 0, None),
            (2, "1.5", None),
            (2, 100, "not-a-date"),
        ],
    )
    def test_validation(self, db_session, supplier, product, quantity, cost, date):
        with pytest.raises(ValidationError):
            procurement_service.create_procurement(
                supplier_id=supplier.id,
                product_id=product.id,
                quantity=quantity,
                unit_cost_price=cost,
                purchase_date=date,
            )
        assert db_session.query(Procurement).count() == 0
        assert db_session.get(Product, product.id).quantity == 10

    def test_unknown_supplier_or_product(self, db_session, supplier, product):
        with pytest.raises(NotFoundError):
            procurement_service.create_procurement(
                supplier_id=999, product_id=product.id, quantity=1, unit_cost_price=1,
            )
        with pytest.raises(NotFoundError):
            procurement_service.create_procurement(
                supplier_id=supplier.id, product_id=999, quantity=1, unit_cost_price=1,
            )

    def test_weighted_average_across_purchases(self, db_session, supplier, make_product):
        product = make_product(quantity=0)
        _buy(supplier, product, 10, 100, "2026-01-05")
        _buy(supplier, product, 5, 130, "2026-02-05")

        summary = get_cost_summary(db_session.get(Product, product.id))
        # (1000 + 650) / 15 = 110
        assert summary.weighted_average_cost == 110
        assert summary.stock_value == 15 * 110

    def test_list_newest_purchase_first(self, db_session, supplier, make_product):
        product = make_product(quantity=0)
        older = _buy(supplier, product, 1, 10, "2026-01-01")
        newer = _buy(supplier, product, 1, 10, "2026-03-01")
        middle = _buy(supplier, product, 1, 10, "2026-02-01")

        ids = [p.id for p in procurement_service.list_procurements(product_id=product.id)]
        assert ids == [newer.id, middle.id, older.id]
        assert procurement_service.list_procurements(supplier_id=supplier.id + 1) == []


class TestAdjustCost:

    def test_revises_earliest_procurement(self, db_session, supplier, make_product, editor):
        product = make_product(quantity=0)
        later = _buy(supplier, product, 4, 200, "2026-03-01")
        earliest = _buy(supplier, product, 6, 100, "2026-01-01")

        revised = procurement_service.adjust_cost(
            product.id, new_unit_cost=150, actor=editor, password=PASSWORD,
        )

        assert revised.id == earliest.id
        assert revised.unit_cost_price == 150
        assert revised.total_cost == 900
        assert db_session.get(Procurement, later.id).unit_cost_price == 200
        assert db_session.get(Product, product.id).quantity == 10

        correction = db_session.query(CostCorrection).one()
        assert correction.kind == "EARLIEST_REVISED"
        assert correction.previous_unit_cost == 100
        assert correction.new_unit_cost == 150
        assert correction.procurement_id == earliest.id
        assert correction.admin_id == editor.id

        # (900 + 800) / 10 = 170
        assert get_cost_summary(db_session.get(Product, product.id)).weighted_average_cost == 170

    def test_synthesizes_procurement_without_history(self, db_session, supplier, make_product, super_admin):
        product = make_product(quantity=8)
        movements_before = db_session.query(StockMovement).count()

        synthesized = procurement_service.adjust_cost(
            product.id,
            new_unit_cost=250,
            actor=super_admin,
            password=PASSWORD,
            supplier_id=supplier.id,
        )

        assert synthesized.quantity_purchased == 8
        assert synthesized.unit_cost_price == 250
        assert synthesized.total_cost == 2000
        assert synthesized.supplier_id == supplier.id
        # Synthesizing cost history never moves stock
        assert db_session.get(Product, product.id).quantity == 8
        assert db_session.query(StockMovement).count() == movements_before

        correction = db_session.query(CostCorrection).one()
        assert correction.kind == "SYNTHESIZED"
        assert correction.previous_unit_cost is None

    def test_synthesized_supplier_is_optional(self, db_session, make_product, editor):
        product = make_product(quantity=2)
        synthesized = procurement_service.adjust_cost(
            product.id, new_unit_cost=99, actor=editor, password=PASSWORD,
        )
        assert synthesized.supplier_id is None

    def test_no_history_and_no_stock(self, db_session, make_product, editor):
        product = make_product(quantity=0)
        with pytest.raises(ValidationError):
            procurement_service.adjust_cost(
                product.id, new_unit_cost=100, actor=editor, password=PASSWORD,
            )
        assert db_session.query(Procurement).count() == 0
        assert db_session.query(CostCorrection).count() == 0

    @pytest.mark.parametrize("password", [None, "", "WrongPassword1!"])
    def test_wrong_password_changes_nothing(self, db_session, supplier, make_product, editor, password):
        product = make_product(quantity=0)
        earliest = _buy(supplier, product, 3, 100, "2026-01-01")

        with pytest.raises(InvalidCredentialsError):
            procurement_service.adjust_cost(
                product.id, new_unit_cost=500, actor=editor, password=password,
            )

        assert db_session.get(Procurement, earliest.id).unit_cost_price == 100
        assert db_session.query(CostCorrection).count() == 0

    @pytest.mark.parametrize("role_fixture", ["viewer", "commercial", "magasinier"])
    def test_other_roles_are_rejected(self, request, db_session, product, role_fixture):
        actor = request.getfixturevalue(role_fixture)
        with pytest.raises(UnauthorizedError):
            procurement_service.adjust_cost(
                product.id, new_unit_cost=100, actor=actor, password=PASSWORD,
            )

    @pytest.mark.parametrize("cost", [0, -10, "abc", None])
    def test_cost_validation(self, db_session, product, editor, cost):
        with pytest.raises(ValidationError):
            procurement_service.adjust_cost(
                product.id, new_unit_cost=cost, actor=editor, password=PASSWORD,
            )

    def test_unknown_product(self, db_session, editor):
        with pytest.raises(NotFoundError):
            procurement_service.adjust_cost(999, new_unit_cost=10, actor=editor, password=PASSWORD)

    def test_corrections_listed_newest_first(self, db_session, supplier, make_product, editor):
        product = make_product(quantity=0)
        _buy(supplier, product, 2, 100, "2026-01-01")
        procurement_service.adjust_cost(product.id, new_unit_cost=110, actor=editor, password=PASSWORD)
        procurement_service.adjust_cost(product.id, new_unit_cost=120, actor=editor, password=PASSWORD)

        corrections = procurement_service.list_cost_corrections(product.id)
        assert [c.new_unit_cost for c in corrections] == [120, 110]
        assert corrections[0].previous_unit_cost == 110
