# app/models/__init__.py
from app.db.base_class import Base

from .user import User

__all__ = [
    "Base",
    "User",
]
