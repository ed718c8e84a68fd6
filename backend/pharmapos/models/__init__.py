from .documents import StoreDocument
from .auth import User, SessionToken

__all__ = [
    'StoreDocument',
    'User', 'SessionToken',
]
