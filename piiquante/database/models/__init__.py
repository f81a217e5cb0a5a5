"""
Database models package initialization.

Importing this package registers every model with ``Base.metadata`` so that
Alembic autogeneration sees the full schema.
"""

from piiquante.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from piiquante.database.models.sauce import Sauce
from piiquante.database.models.user import User

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "Sauce",
    "User",
]
