from .catalog import Category, Product, Supplier, Procurement, CostCorrection, StockMovement
from .sales import Customer, Order, OrderItem
from .wholesale import Wholesaler, WholesaleOrder, WholesaleOrderItem
from .auth import Admin, SessionToken
from .finance import CapitalEntry
from .documents import DocumentSequence

__all__ = [
    'Category', 'Product', 'Supplier', 'Procurement', 'CostCorrection', 'StockMovement',
    'Customer', 'Order', 'OrderItem',
    'Wholesaler', 'WholesaleOrder', 'WholesaleOrderItem',
    'Admin', 'SessionToken',
    'CapitalEntry',
    'DocumentSequence',
]
