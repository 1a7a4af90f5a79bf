from .accounts import Role, Account, SessionToken
from .listings import Listing, MATERIALS
from .orders import Order, ORDER_STATUSES, PAYMENT_STATUSES, PAYMENT_METHODS
from .operations import OperatorEvent

__all__ = [
    'Role', 'Account', 'SessionToken',
    'Listing', 'MATERIALS',
    'Order', 'ORDER_STATUSES', 'PAYMENT_STATUSES', 'PAYMENT_METHODS',
    'OperatorEvent',
]
