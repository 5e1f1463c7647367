from .auth import User, ActivityLog
from .inventory import Product, StockThreshold, InventoryMovement
from .sales import Sale, SaleLine
from .timekeeping import AttendanceRecord
from .communications import Notification

__all__ = [
    'User', 'ActivityLog',
    'Product', 'StockThreshold', 'InventoryMovement',
    'Sale', 'SaleLine',
    'AttendanceRecord',
    'Notification',
]
