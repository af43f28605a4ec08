from .auth import User, SessionToken
from .security import SecurityEvent
from .catalog import Item
from .ledger import Transaction

__all__ = [
    'User', 'SessionToken', 'SecurityEvent',
    'Item',
    'Transaction',
]
