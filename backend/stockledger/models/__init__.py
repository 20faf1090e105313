from .catalog import Item, Store
from .stock import StockMovement, StockBalance
from .purchasing import Purchase, PurchaseItem
from .sales import Sale, SaleItem

__all__ = [
    'Item', 'Store',
    'StockMovement', 'StockBalance',
    'Purchase', 'PurchaseItem',
    'Sale', 'SaleItem',
]
