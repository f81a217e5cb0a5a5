"""
User model for authentication.

A user is created at signup and never modified afterwards; only the email
and the bcrypt hash of the password are stored.
"""

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from piiquante.database.base import BaseModel


class User(BaseModel):
    """
    Registered account.

    Attributes:
        id: Unique user identifier (UUID)
        email: Normalised (trimmed, lower-cased) email, unique
        password_hash: bcrypt hash, never the raw password
        created_at: Account creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        index=True,
        comment="User email address, stored lower-cased",
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="bcrypt password hash",
    )

    __table_args__ = (
        CheckConstraint("email = lower(email)", name="email_lowercase"),
        {"comment": "Registered accounts"},
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
