from .auth import User
from .customers import Customer
from .inventory import Item, Roll, InventoryUnit, Supplier
from .sales import Transaction, TransactionItem, TransactionItemUnit, Payment
from .restocks import Restock, RestockItem, RestockRoll
from .cashboxes import Cashbox, CashboxEntry
from .returns import InventoryReturn

__all__ = [
    'User',
    'Customer',
    'Item', 'Roll', 'InventoryUnit', 'Supplier',
    'Transaction', 'TransactionItem', 'TransactionItemUnit', 'Payment',
    'Restock', 'RestockItem', 'RestockRoll',
    'Cashbox', 'CashboxEntry',
    'InventoryReturn',
]
