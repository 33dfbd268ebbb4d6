from .tenancy import Property, Outlet
from .auth import User, SessionToken
from .menu import MenuItem, Warehouse, StockLevel
from .tables import DiningTable
from .bookings import Booking, BookingAdjustment
from .shifts import Shift, ShiftReading
from .orders import Order, OrderItem, OrderPayment, OrderVoid, DiscountType, OrderDiscount, OrderSequence

__all__ = [
    'Property', 'Outlet',
    'User', 'SessionToken',
    'MenuItem', 'Warehouse', 'StockLevel',
    'DiningTable',
    'Booking', 'BookingAdjustment',
    'Shift', 'ShiftReading',
    'Order', 'OrderItem', 'OrderPayment', 'OrderVoid', 'DiscountType', 'OrderDiscount', 'OrderSequence',
]
