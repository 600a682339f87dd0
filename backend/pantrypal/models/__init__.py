from .tenancy import Organization
from .inventory import Product, ProductStatus, InventoryTransaction, TransactionType
from .billing import Bill, BillItem, BillStatus, CreditNote, BillSequence
from .customers import Customer

__all__ = [
    'Organization',
    'Product', 'ProductStatus', 'InventoryTransaction', 'TransactionType',
    'Bill', 'BillItem', 'BillStatus', 'CreditNote', 'BillSequence',
    'Customer',
]
