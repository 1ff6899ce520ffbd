# Overview: Closed role set and the retail order transition table.

"""
Roles and retail order transitions

Roles are a closed enum. Retail status changes are authorized against an
explicit table keyed by role so the state machine can be tested
exhaustively:

    PENDING -> CONFIRMED -> SHIPPED -> DELIVERED
    PENDING | CONFIRMED -> CANCELLED
    DELIVERED -> RETURNED

commercial   confirms or cancels orders that have not left the warehouse.
magasinier   ships and delivers confirmed orders.
super_admin  any transition that does not leave a terminal state.
editor       same as super_admin.
viewer       read-only.
"""

from __future__ import annotations

from enum import Enum


class AdminRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    EDITOR = "editor"
    VIEWER = "viewer"
    COMMERCIAL = "commercial"
    MAGASINIER = "magasinier"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class WholesaleStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


ALL_ROLES = frozenset(AdminRole)
PRODUCT_MANAGERS = frozenset({AdminRole.SUPER_ADMIN, AdminRole.EDITOR})
ORDER_READERS = ALL_ROLES
ORDER_STATUS_WRITERS = frozenset({
    AdminRole.SUPER_ADMIN,
    AdminRole.EDITOR,
    AdminRole.COMMERCIAL,
    AdminRole.MAGASINIER,
})
CUSTOMER_READERS = frozenset({
    AdminRole.SUPER_ADMIN,
    AdminRole.EDITOR,
    AdminRole.VIEWER,
    AdminRole.COMMERCIAL,
})

TERMINAL_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.RETURNED})

# A delivered order can only be returned
DELIVERED_EXITS = frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED})

# Cancelling from these puts the ordered units back when RESTOCK_ON_CANCEL is on
RESTOCKABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.SHIPPED})

# Orders a magasinier can see (and therefore act on)
WAREHOUSE_VISIBLE_STATUSES = frozenset({
    OrderStatus.CONFIRMED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
})

# (from_status, to_status) pairs per restricted role
RESTRICTED_TRANSITIONS: dict[AdminRole, frozenset[tuple[OrderStatus, OrderStatus]]] = {
    AdminRole.COMMERCIAL: frozenset({
        (OrderStatus.PENDING, OrderStatus.CONFIRMED),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    }),
    AdminRole.MAGASINIER: frozenset({
        (OrderStatus.CONFIRMED, OrderStatus.SHIPPED),
        (OrderStatus.CONFIRMED, OrderStatus.DELIVERED),
        (OrderStatus.SHIPPED, OrderStatus.SHIPPED),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
    }),
    AdminRole.VIEWER: frozenset(),
}

UNRESTRICTED_ROLES = frozenset({AdminRole.SUPER_ADMIN, AdminRole.EDITOR})


def parse_role(value) -> AdminRole:
    try:
        return AdminRole(value)
    except ValueError:
        raise ValueError(
            f"Invalid role '{value}'. Must be one of: {', '.join(r.value for r in AdminRole)}"
        )


def parse_order_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValueError(
            f"Invalid status '{value}'. Must be one of: {', '.join(s.value for s in OrderStatus)}"
        )


def can_transition(role: AdminRole, from_status: OrderStatus, to_status: OrderStatus) -> bool:
    """True when ``role`` may move an order from ``from_status`` to ``to_status``."""
    if role in UNRESTRICTED_ROLES:
        if from_status in TERMINAL_STATUSES:
            return from_status == to_status
        if from_status == OrderStatus.DELIVERED:
            return to_status in DELIVERED_EXITS
        return True
    return (from_status, to_status) in RESTRICTED_TRANSITIONS.get(role, frozenset())


def visible_statuses(role: AdminRole) -> frozenset[OrderStatus] | None:
    """Statuses a role may list/read, or None when unrestricted."""
    if role == AdminRole.MAGASINIER:
        return WAREHOUSE_VISIBLE_STATUSES
    return None
