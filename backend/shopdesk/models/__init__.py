from .tenancy import User, Store
from .auth import SessionToken
from .inventory import Product
from .sales import Sale, SaleItem

__all__ = [
    'User', 'Store',
    'SessionToken',
    'Product',
    'Sale', 'SaleItem',
]
