from .catalog import Category, Product
from .customers import Customer
from .sales import Sale, SaleItem
from .inventory import InventoryMovement, DocumentSequence
from .credits import Credit, CreditPayment
from .purchases import Supplier, Purchase, PurchaseItem
from .auth import User, SessionToken

__all__ = [
    'Category', 'Product',
    'Customer',
    'Sale', 'SaleItem',
    'InventoryMovement', 'DocumentSequence',
    'Credit', 'CreditPayment',
    'Supplier', 'Purchase', 'PurchaseItem',
    'User', 'SessionToken',
]
