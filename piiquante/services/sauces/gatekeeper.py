"""Ownership checks and image lifecycle for sauce mutations.

Only the owner of a sauce may edit or delete it. When the image changes,
the new asset is stored and referenced before the old one is released, so a
failure part way never leaves a sauce pointing at a deleted file.
"""

import uuid
from typing import Any, Mapping, Optional

from piiquante.core.exceptions import ForbiddenError
from piiquante.core.logging import get_logger
from piiquante.database.models.sauce import Sauce
from piiquante.services.assets.store import AssetStore, ImageUpload
from piiquante.services.sauces.repository import SauceRepository

logger = get_logger(__name__)


def authorize_mutation(sauce: Sauce, requester_id: uuid.UUID) -> None:
    """Raise ForbiddenError unless requester_id owns the sauce."""
    if sauce.user_id != requester_id:
        logger.warning(
            "Mutation refused for non-owner",
            sauce_id=str(sauce.id),
            owner_id=str(sauce.user_id),
            requester_id=str(requester_id),
        )
        raise ForbiddenError(
            "Requester does not own the sauce",
            code="NOT_OWNER",
            sauce_id=str(sauce.id),
        )


class MutationGatekeeper:
    """
    Applies owner-only mutations through the repository and asset store.

    Args:
        sauces: Sauce repository bound to the request session
        assets: Asset store holding sauce images
    """

    def __init__(self, sauces: SauceRepository, assets: AssetStore):
        self.sauces = sauces
        self.assets = assets

    async def release_quietly(self, ref: Optional[str]) -> None:
        """Release an asset, logging instead of raising on failure."""
        if not ref:
            return
        try:
            await self.assets.release(ref)
        except Exception as e:
            logger.warning(
                "Asset release failed, file left behind",
                ref=ref,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    async def replace_image(
        self,
        sauce: Sauce,
        changes: Mapping[str, Any],
        image: Optional[ImageUpload] = None,
    ) -> Sauce:
        """
        Update a sauce, swapping its image when a new one is supplied.

        Order: store the new asset, write and commit the new reference,
        then release the old asset. If the write fails the new asset is
        released and the old reference stays in place.

        Args:
            sauce: Loaded sauce, already authorized
            changes: Field updates to apply
            image: Replacement image, or None to keep the current one

        Returns:
            The updated sauce
        """
        old_ref = sauce.image_ref
        new_ref = None
        if image is not None:
            new_ref = await self.assets.store(
                image.data, image.content_type, image.filename
            )

        changes = dict(changes)
        if new_ref is not None:
            changes["image_ref"] = new_ref

        try:
            await self.sauces.update_fields(sauce, changes)
            await self.sauces.commit()
        except Exception:
            await self.sauces.rollback()
            await self.release_quietly(new_ref)
            raise

        if new_ref is not None and old_ref != new_ref:
            await self.release_quietly(old_ref)

        logger.info(
            "Sauce updated",
            sauce_id=str(sauce.id),
            fields=sorted(changes),
            image_replaced=new_ref is not None,
        )
        return sauce

    async def delete_record(self, sauce: Sauce, requester_id: uuid.UUID) -> None:
        """
        Delete a sauce owned by requester_id and release its image.

        Release is best effort: a failure is logged and the deletion stands.

        Raises:
            ForbiddenError: If requester_id is not the owner
        """
        authorize_mutation(sauce, requester_id)
        image_ref = sauce.image_ref

        try:
            await self.sauces.delete(sauce)
            await self.sauces.commit()
        except Exception:
            await self.sauces.rollback()
            raise

        logger.info("Sauce deleted", sauce_id=str(sauce.id))
        await self.release_quietly(image_ref)
