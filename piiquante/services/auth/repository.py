"""
User repository for credential storage.

Emails are normalised before every write and lookup so uniqueness is
case-insensitive.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from piiquante.core.logging import get_logger
from piiquante.database.models.user import User

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserRepository:
    """Async data access for ``User`` rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve user by email address.

        Args:
            email: Email address, any case

        Returns:
            User instance or None if not found
        """
        stmt = select(User).where(User.email == normalize_email(email))
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to retrieve user by email",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        try:
            return await self.session.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to retrieve user",
                user_id=str(user_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def add(self, user: User) -> User:
        """
        Insert a new user and commit.

        Args:
            user: Transient user instance

        Returns:
            The persisted user

        Raises:
            IntegrityError: If the email is already taken
            SQLAlchemyError: If database operation fails
        """
        user.email = normalize_email(user.email)
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning("User insert rejected by unique constraint")
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "User insert failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        logger.info("User created", user_id=str(user.id))
        return user
