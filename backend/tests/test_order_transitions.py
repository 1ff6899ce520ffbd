"""
Retail order state machine: the role transition table, the service that
applies it, and role-filtered reads.
"""

import itertools

import pytest

from storeledger.errors import ForbiddenError, NotFoundError, ValidationError
from storeledger.models import Order, Product, StockMovement
from storeledger.roles import AdminRole, OrderStatus, can_transition, visible_statuses
from storeledger.services import order_service

S = OrderStatus

COMMERCIAL_ALLOWED = {
    (S.PENDING, S.CONFIRMED),
    (S.PENDING, S.CANCELLED),
    (S.CONFIRMED, S.CANCELLED),
}
MAGASINIER_ALLOWED = {
    (S.CONFIRMED, S.SHIPPED),
    (S.CONFIRMED, S.DELIVERED),
    (S.SHIPPED, S.SHIPPED),
    (S.SHIPPED, S.DELIVERED),
}
TERMINAL = {S.CANCELLED, S.RETURNED}


def _expected(role, frm, to):
    if role in (AdminRole.SUPER_ADMIN, AdminRole.EDITOR):
        if frm in TERMINAL:
            return frm == to
        if frm == S.DELIVERED:
            return to in (S.DELIVERED, S.RETURNED)
        return True
    if role == AdminRole.COMMERCIAL:
        return (frm, to) in COMMERCIAL_ALLOWED
    if role == AdminRole.MAGASINIER:
        return (frm, to) in MAGASINIER_ALLOWED
    return False


@pytest.mark.parametrize(
    "role,frm,to",
    list(itertools.product(list(AdminRole), list(OrderStatus), list(OrderStatus))),
)
def test_transition_table_is_exhaustive(role, frm, to):
    assert can_transition(role, frm, to) is _expected(role, frm, to)


def test_commercial_cannot_touch_delivered_orders():
    assert not any(can_transition(AdminRole.COMMERCIAL, S.DELIVERED, to) for to in OrderStatus)


def test_magasinier_cannot_ship_pending():
    assert not can_transition(AdminRole.MAGASINIER, S.PENDING, S.SHIPPED)


def test_visible_statuses():
    assert visible_statuses(AdminRole.MAGASINIER) == {S.CONFIRMED, S.SHIPPED, S.DELIVERED}
    for role in (AdminRole.SUPER_ADMIN, AdminRole.EDITOR, AdminRole.VIEWER, AdminRole.COMMERCIAL):
        assert visible_statuses(role) is None


@pytest.fixture
def place_order(db_session, product, customer_data):
    def _place(status: OrderStatus = S.PENDING, quantity: int = 2):
        order = order_service.create_order(
            items=[{"product_id": product.id, "quantity": quantity}],
            customer=customer_data,
        )
        if status != S.PENDING:
            order.status = status.value
            db_session.commit()
        return order
    return _place


class TestSetOrderStatus:

    def test_happy_path(self, place_order, commercial, magasinier):
        order = place_order()

        order = order_service.set_order_status(order.id, "CONFIRMED", commercial)
        assert order.status == "CONFIRMED"
        order = order_service.set_order_status(order.id, "SHIPPED", magasinier)
        assert order.status == "SHIPPED"
        order = order_service.set_order_status(order.id, "DELIVERED", magasinier)
        assert order.status == "DELIVERED"

    def test_commercial_delivered_is_forbidden(self, db_session, place_order, commercial):
        order = place_order(S.DELIVERED)
        for target in ("CANCELLED", "CONFIRMED", "RETURNED"):
            with pytest.raises(ForbiddenError):
                order_service.set_order_status(order.id, target, commercial)
        assert db_session.get(Order, order.id).status == "DELIVERED"

    def test_magasinier_pending_to_shipped_forbidden(self, place_order, magasinier):
        order = place_order()
        with pytest.raises(ForbiddenError):
            order_service.set_order_status(order.id, "SHIPPED", magasinier)

    def test_viewer_cannot_change_status(self, place_order, viewer):
        order = place_order()
        with pytest.raises(ForbiddenError):
            order_service.set_order_status(order.id, "CONFIRMED", viewer)

    def test_editor_can_return_delivered_but_not_reopen_cancelled(self, place_order, editor):
        delivered = place_order(S.DELIVERED)
        assert order_service.set_order_status(delivered.id, "RETURNED", editor).status == "RETURNED"

        cancelled = place_order(S.CANCELLED)
        with pytest.raises(ForbiddenError):
            order_service.set_order_status(cancelled.id, "PENDING", editor)

    @pytest.mark.parametrize("target", ["PENDING", "CONFIRMED", "SHIPPED", "CANCELLED"])
    def test_delivered_cannot_be_reopened_or_cancelled(self, db_session, place_order, super_admin, editor, target):
        order = place_order(S.DELIVERED)
        for actor in (super_admin, editor):
            with pytest.raises(ForbiddenError):
                order_service.set_order_status(order.id, target, actor)
        assert db_session.get(Order, order.id).status == "DELIVERED"

    def test_same_status_is_noop(self, place_order, super_admin):
        order = place_order(S.CONFIRMED)
        version = order.version_id
        order = order_service.set_order_status(order.id, "CONFIRMED", super_admin)
        assert order.status == "CONFIRMED"
        assert order.version_id == version

    def test_not_found(self, db_session, super_admin, commercial):
        for actor in (super_admin, commercial):
            with pytest.raises(NotFoundError):
                order_service.set_order_status(404, "CONFIRMED", actor)

    def test_unknown_status(self, place_order, super_admin):
        order = place_order()
        with pytest.raises(ValidationError):
            order_service.set_order_status(order.id, "LOST", super_admin)


class TestCancellationStock:

    def test_cancel_does_not_restock_by_default(self, db_session, place_order, product, commercial):
        order = place_order(quantity=4)
        order_service.set_order_status(order.id, "CANCELLED", commercial)
        assert db_session.get(Product, product.id).quantity == 6

    def test_cancel_restocks_when_enabled(self, app, db_session, place_order, product, commercial):
        app.config["RESTOCK_ON_CANCEL"] = True
        order = place_order(S.CONFIRMED, quantity=4)

        order_service.set_order_status(order.id, "CANCELLED", commercial)

        assert db_session.get(Product, product.id).quantity == 10
        restock = db_session.query(StockMovement).filter_by(reason="RETAIL_ORDER_CANCELLED").one()
        assert restock.delta == 4
        assert restock.reference_id == order.id

    def test_cancel_after_shipping_restocks_when_enabled(self, app, db_session, place_order, product, super_admin):
        app.config["RESTOCK_ON_CANCEL"] = True
        order = place_order(S.SHIPPED, quantity=3)

        order_service.set_order_status(order.id, "CANCELLED", super_admin)

        assert db_session.get(Product, product.id).quantity == 10

    def test_delivered_units_never_come_back(self, app, db_session, place_order, product, super_admin):
        app.config["RESTOCK_ON_CANCEL"] = True
        order = place_order(S.DELIVERED, quantity=4)

        with pytest.raises(ForbiddenError):
            order_service.set_order_status(order.id, "CANCELLED", super_admin)
        with pytest.raises(ForbiddenError):
            order_service.set_order_status(order.id, "PENDING", super_admin)

        assert db_session.get(Product, product.id).quantity == 6
        assert db_session.query(StockMovement).filter_by(reason="RETAIL_ORDER_CANCELLED").count() == 0

    def test_cancelling_a_returned_order_is_forbidden(self, app, db_session, place_order, product, editor):
        app.config["RESTOCK_ON_CANCEL"] = True
        order = place_order(S.RETURNED, quantity=2)
        with pytest.raises(ForbiddenError):
            order_service.set_order_status(order.id, "CANCELLED", editor)
        assert db_session.get(Product, product.id).quantity == 8


class TestRoleFilteredReads:

    def test_magasinier_sees_warehouse_statuses_only(self, place_order, magasinier, commercial):
        pending = place_order(S.PENDING)
        confirmed = place_order(S.CONFIRMED)
        shipped = place_order(S.SHIPPED)
        cancelled = place_order(S.CANCELLED)

        seen = {o.id for o in order_service.list_orders(actor=magasinier)}
        assert seen == {confirmed.id, shipped.id}

        everything = {o.id for o in order_service.list_orders(actor=commercial)}
        assert everything == {pending.id, confirmed.id, shipped.id, cancelled.id}

    def test_magasinier_status_filter_outside_view_is_ignored(self, place_order, magasinier):
        place_order(S.PENDING)
        confirmed = place_order(S.CONFIRMED)

        assert [o.id for o in order_service.list_orders(actor=magasinier, status="PENDING")] == [confirmed.id]
        assert [o.id for o in order_service.list_orders(actor=magasinier, status="CONFIRMED")] == [confirmed.id]

    def test_get_order_hidden_from_magasinier(self, place_order, magasinier, viewer):
        pending = place_order(S.PENDING)
        with pytest.raises(NotFoundError):
            order_service.get_order(pending.id, actor=magasinier)
        assert order_service.get_order(pending.id, actor=viewer).id == pending.id

    def test_filters_and_newest_first(self, place_order, super_admin):
        first = place_order()
        second = place_order()
        assert [o.id for o in order_service.list_orders(actor=super_admin)] == [second.id, first.id]
        assert order_service.list_orders(actor=super_admin, city="Casablanca") == []
        assert len(order_service.list_orders(actor=super_admin, city="Rabat", phone="0612345678")) == 2
