from .auth import User, SessionToken
from .catalog import Category, Book
from .cart import CartItem, WishlistItem
from .orders import Order, OrderItem, Payment, OrderSequence
from .inventory import InventoryLog

__all__ = [
    'User', 'SessionToken',
    'Category', 'Book',
    'CartItem', 'WishlistItem',
    'Order', 'OrderItem', 'Payment', 'OrderSequence',
    'InventoryLog',
]
