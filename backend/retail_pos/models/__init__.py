from .stores import Store
from .customers import Customer
from .inventory import Product
from .sales import Sale, SaleLine, SaleSequence

__all__ = [
    'Store',
    'Customer',
    'Product',
    'Sale', 'SaleLine', 'SaleSequence',
]
