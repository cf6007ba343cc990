"""Database models"""

from app.models.database import Base, close_db, get_db, init_db
from app.models.delegate_api_key import DelegateApiKey

__all__ = [
    "Base",
    "get_db",
    "init_db",
    "close_db",
    "DelegateApiKey",
]
