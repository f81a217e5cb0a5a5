"""
Sauce repository for data access operations.

Writes go through the ORM unit of work so the mapper's version counter
guards every UPDATE and DELETE; a write based on a stale read surfaces as
``ConflictError`` instead of silently overwriting another request's change.
"""

import uuid
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from piiquante.core.exceptions import ConflictError
from piiquante.core.logging import get_logger
from piiquante.database.models.sauce import Sauce

logger = get_logger(__name__)

# Attributes that update_fields may touch. Owner and id are never writable.
UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "manufacturer",
        "description",
        "main_pepper",
        "heat",
        "image_ref",
        "likes",
        "dislikes",
        "users_liked",
        "users_disliked",
    }
)


def _stale(sauce_id: uuid.UUID) -> ConflictError:
    return ConflictError(
        "The sauce was modified by another request, reload it and try again",
        code="STALE_RECORD",
        sauce_id=str(sauce_id),
    )


class SauceRepository:
    """
    Repository for sauce persistence.

    Implements the persistence capability used by the sauce service:
    find_by_id, find_all, save, update_fields and delete, plus commit and
    rollback of the underlying session.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize sauce repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def find_by_id(self, sauce_id: uuid.UUID) -> Optional[Sauce]:
        """
        Get sauce by ID.

        Args:
            sauce_id: Sauce identifier

        Returns:
            Sauce if found, None otherwise

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            sauce = await self.session.get(Sauce, sauce_id)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to retrieve sauce",
                sauce_id=str(sauce_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        if sauce is None:
            logger.debug("Sauce not found", sauce_id=str(sauce_id))
        return sauce

    async def find_all(self) -> Sequence[Sauce]:
        """
        List every sauce, newest first.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        stmt = select(Sauce).order_by(Sauce.created_at.desc(), Sauce.id)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list sauces",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        return result.scalars().all()

    async def save(self, sauce: Sauce) -> Sauce:
        """
        Insert a new sauce or flush pending changes of a loaded one.

        Args:
            sauce: Sauce instance

        Returns:
            The same instance, flushed

        Raises:
            ConflictError: If the row changed since it was loaded
            SQLAlchemyError: If database operation fails
        """
        self.session.add(sauce)
        try:
            await self.session.flush()
        except StaleDataError as e:
            logger.warning(
                "Stale sauce write rejected",
                sauce_id=str(sauce.id),
                error=str(e),
            )
            raise _stale(sauce.id) from e
        except SQLAlchemyError as e:
            logger.error(
                "Sauce save failed",
                sauce_id=str(sauce.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        return sauce

    async def update_fields(
        self, sauce: Sauce, changes: Mapping[str, Any]
    ) -> Sauce:
        """
        Apply a partial update to a loaded sauce and flush it.

        Args:
            sauce: Sauce previously returned by this repository
            changes: Attribute name to new value

        Returns:
            The updated sauce

        Raises:
            ValueError: If ``changes`` names a field that may not be updated
            ConflictError: If the row changed since it was loaded
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        for field, value in changes.items():
            setattr(sauce, field, value)
        return await self.save(sauce)

    async def delete(self, sauce: Sauce) -> None:
        """
        Delete a loaded sauce.

        Raises:
            ConflictError: If the row changed since it was loaded
            SQLAlchemyError: If database operation fails
        """
        try:
            await self.session.delete(sauce)
            await self.session.flush()
        except StaleDataError as e:
            raise _stale(sauce.id) from e
        except SQLAlchemyError as e:
            logger.error(
                "Sauce deletion failed",
                sauce_id=str(sauce.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def commit(self) -> None:
        """
        Commit the current transaction.

        Raises:
            ConflictError: If a pending versioned write turned out stale
        """
        try:
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            raise ConflictError(
                "The sauce was modified by another request, reload it and try again",
                code="STALE_RECORD",
            ) from e

    async def rollback(self) -> None:
        await self.session.rollback()
