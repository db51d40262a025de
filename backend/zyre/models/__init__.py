from .stores import Store
from .auth import User, Role, Position, Session, user_stores
from .inventory import Product, InventoryBatch, InventoryItem, InventoryMovement, MOVEMENT_TYPES
from .psr import PSR
from .activity import ActivityLog

__all__ = [
    'Store',
    'User', 'Role', 'Position', 'Session', 'user_stores',
    'Product', 'InventoryBatch', 'InventoryItem', 'InventoryMovement', 'MOVEMENT_TYPES',
    'PSR',
    'ActivityLog',
]
