from .staff import User, STAFF_ROLES
from .dining import DiningTable
from .menu import MenuCategory, MenuItem
from .orders import Order, OrderLine, Payment
from .kitchen import KitchenTicket
from .inventory import InventoryItem

__all__ = [
    'User', 'STAFF_ROLES',
    'DiningTable',
    'MenuCategory', 'MenuItem',
    'Order', 'OrderLine', 'Payment',
    'KitchenTicket',
    'InventoryItem',
]
