"""
Sauce service.

Orchestrates the sauce repository, the vote state machine, the mutation
gatekeeper and the asset store for the ``/api/sauces`` endpoints. Database
failures surface as ``UnavailableError``; no operation retries.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from piiquante.core.exceptions import (
    InvalidInputError,
    NotFoundError,
    UnavailableError,
)
from piiquante.core.logging import get_logger
from piiquante.database.models.sauce import Sauce
from piiquante.schemas.sauce import SauceFields
from piiquante.services.assets.store import AssetStore, ImageUpload
from piiquante.services.sauces.gatekeeper import (
    MutationGatekeeper,
    authorize_mutation,
)
from piiquante.services.sauces.rating import VoteIntent, apply_vote
from piiquante.services.sauces.repository import SauceRepository

logger = get_logger(__name__)

# Fields a client may set. Owner, counters and voter lists are server-owned.
EDITABLE_FIELDS = frozenset(
    {"name", "manufacturer", "description", "main_pepper", "heat"}
)


@asynccontextmanager
async def persistence_errors(operation: str, **context: Any) -> AsyncIterator[None]:
    """Translate SQLAlchemy failures into UnavailableError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(
            "Persistence failure",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
            **context,
        )
        raise UnavailableError(
            f"Database error during {operation}", operation=operation, **context
        ) from e


class SauceService:
    """
    Service for sauce records and their ratings.

    Args:
        sauces: Sauce repository bound to the request session
        assets: Asset store for sauce images
    """

    def __init__(self, sauces: SauceRepository, assets: AssetStore):
        self.sauces = sauces
        self.assets = assets
        self.gatekeeper = MutationGatekeeper(sauces, assets)
        self.logger = logger.bind(service="sauces")

    async def list_sauces(self) -> Sequence[Sauce]:
        async with persistence_errors("list_sauces"):
            return await self.sauces.find_all()

    async def get_sauce(self, sauce_id: uuid.UUID) -> Sauce:
        """
        Get a sauce by id.

        Raises:
            NotFoundError: If no sauce has this id
        """
        async with persistence_errors("get_sauce", sauce_id=str(sauce_id)):
            sauce = await self.sauces.find_by_id(sauce_id)
        if sauce is None:
            raise NotFoundError("Sauce not found", sauce_id=str(sauce_id))
        return sauce

    async def create_sauce(
        self,
        owner_id: uuid.UUID,
        fields: SauceFields,
        image: Optional[ImageUpload],
    ) -> Sauce:
        """
        Create a sauce owned by owner_id.

        The image is stored first. The sauce starts with no votes. If the
        record cannot be saved the stored image is released again.

        Args:
            owner_id: Authenticated creator
            fields: Validated sauce fields
            image: Sauce image, required

        Returns:
            The created sauce

        Raises:
            InvalidInputError: If the image is missing or rejected
            UnavailableError: If storage or the database fails
        """
        if image is None:
            raise InvalidInputError("An image is required", code="IMAGE_REQUIRED")

        image_ref = await self.assets.store(
            image.data, image.content_type, image.filename
        )
        sauce = Sauce(
            id=uuid.uuid4(),
            user_id=owner_id,
            image_ref=image_ref,
            likes=0,
            dislikes=0,
            users_liked=[],
            users_disliked=[],
            **fields.model_dump(include=EDITABLE_FIELDS),
        )

        try:
            async with persistence_errors("create_sauce", owner_id=str(owner_id)):
                await self.sauces.save(sauce)
                await self.sauces.commit()
        except Exception:
            await self.sauces.rollback()
            await self.gatekeeper.release_quietly(image_ref)
            raise

        self.logger.info(
            "Sauce created",
            sauce_id=str(sauce.id),
            owner_id=str(owner_id),
            image_ref=image_ref,
        )
        return sauce

    async def update_sauce(
        self,
        sauce_id: uuid.UUID,
        requester_id: uuid.UUID,
        fields: SauceFields,
        image: Optional[ImageUpload] = None,
    ) -> Sauce:
        """
        Update a sauce owned by requester_id.

        Owner, vote counters and voter lists are preserved whatever the
        client sends. Without a new image the current one is kept.

        Raises:
            NotFoundError: If no sauce has this id
            ForbiddenError: If requester_id is not the owner
            ConflictError: If the sauce changed concurrently
        """
        sauce = await self.get_sauce(sauce_id)
        authorize_mutation(sauce, requester_id)

        async with persistence_errors("update_sauce", sauce_id=str(sauce_id)):
            return await self.gatekeeper.replace_image(
                sauce, fields.model_dump(include=EDITABLE_FIELDS), image
            )

    async def delete_sauce(
        self, sauce_id: uuid.UUID, requester_id: uuid.UUID
    ) -> None:
        """
        Delete a sauce owned by requester_id and release its image.

        Raises:
            NotFoundError: If no sauce has this id
            ForbiddenError: If requester_id is not the owner
        """
        sauce = await self.get_sauce(sauce_id)
        async with persistence_errors("delete_sauce", sauce_id=str(sauce_id)):
            await self.gatekeeper.delete_record(sauce, requester_id)

    async def vote(
        self, sauce_id: uuid.UUID, user_id: uuid.UUID, intent: Any
    ) -> Sauce:
        """
        Like, dislike or cancel the vote of user_id on a sauce.

        Args:
            sauce_id: Sauce to vote on
            user_id: Voting user, any authenticated user
            intent: 1 to like, -1 to dislike, 0 to cancel

        Raises:
            InvalidInputError: If intent is not -1, 0 or 1
            NotFoundError: If no sauce has this id
            ConflictError: If the sauce changed concurrently
        """
        intent = VoteIntent.from_value(intent)
        sauce = await self.get_sauce(sauce_id)
        outcome = apply_vote(sauce, user_id, intent)
        if not outcome.changed:
            return sauce

        try:
            async with persistence_errors("vote", sauce_id=str(sauce_id)):
                await self.sauces.save(sauce)
                await self.sauces.commit()
        except Exception:
            await self.sauces.rollback()
            raise

        self.logger.info(
            "Vote recorded",
            sauce_id=str(sauce_id),
            user_id=str(user_id),
            previous=outcome.previous.value,
            current=outcome.current.value,
        )
        return sauce
