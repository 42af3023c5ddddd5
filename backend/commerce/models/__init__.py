from .catalog import Product
from .customers import Customer, CartItem
from .auth import OneTimeCode
from .orders import Order, OrderItem

__all__ = [
    'Product',
    'Customer', 'CartItem',
    'OneTimeCode',
    'Order', 'OrderItem',
]
