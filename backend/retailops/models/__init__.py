from .catalog import Product, Warehouse, Branch, warehouse_products
from .stock import Stock, StockRequest
from .sales import SalesTransaction, TransactionLine

__all__ = [
    'Product', 'Warehouse', 'Branch', 'warehouse_products',
    'Stock', 'StockRequest',
    'SalesTransaction', 'TransactionLine',
]
