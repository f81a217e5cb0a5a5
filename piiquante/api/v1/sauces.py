"""
Sauce API endpoints.

Every endpoint requires a bearer token. Creation is a multipart request with
a ``sauce`` JSON string and an ``image`` file; updates accept either that
multipart shape or a plain JSON body when the image does not change.
"""

import json
from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from pydantic import ValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile

from piiquante.api.deps import CurrentUserId, get_sauce_service
from piiquante.core.config import Settings, get_settings
from piiquante.core.exceptions import InvalidInputError
from piiquante.core.logging import get_logger
from piiquante.database.models.sauce import Sauce
from piiquante.schemas.auth import MessageResponse
from piiquante.schemas.sauce import LikeRequest, SauceFields, SauceResponse
from piiquante.services.assets.store import ImageUpload, read_upload
from piiquante.services.sauces.rating import VoteIntent
from piiquante.services.sauces.service import SauceService

logger = get_logger(__name__)
router = APIRouter(prefix="/sauces", tags=["sauces"])

VOTE_MESSAGES = {
    VoteIntent.LIKE: "Sauce liked",
    VoteIntent.DISLIKE: "Sauce disliked",
    VoteIntent.CANCEL: "Vote cancelled",
}


def to_response(request: Request, sauce: Sauce) -> SauceResponse:
    return SauceResponse(
        id=sauce.id,
        user_id=sauce.user_id,
        name=sauce.name,
        manufacturer=sauce.manufacturer,
        description=sauce.description,
        main_pepper=sauce.main_pepper,
        image_url=str(request.url_for("images", path=sauce.image_ref)),
        heat=sauce.heat,
        likes=sauce.likes,
        dislikes=sauce.dislikes,
        users_liked=list(sauce.users_liked or []),
        users_disliked=list(sauce.users_disliked or []),
    )


def parse_fields(raw: Any) -> SauceFields:
    """
    Validate sauce fields from a JSON string or an already decoded mapping.

    Raises:
        InvalidInputError: If the payload is not valid JSON or fails validation
    """
    try:
        if isinstance(raw, (str, bytes)):
            return SauceFields.model_validate_json(raw)
        return SauceFields.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidInputError(
            f"Invalid sauce field {location}: {first.get('msg', 'invalid value')}",
            code="INVALID_SAUCE",
        ) from e


async def read_update_request(
    request: Request, max_bytes: int
) -> tuple[SauceFields, Optional[ImageUpload]]:
    """Read an update body sent either as JSON or as multipart form data."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("image")
        image = None
        if isinstance(upload, StarletteUploadFile):
            image = await read_upload(upload, max_bytes)
        raw = form.get("sauce")
        if raw is None:
            raw = {k: v for k, v in form.items() if k != "image"}
        return parse_fields(raw), image

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidInputError("Request body is not valid JSON", code="INVALID_JSON") from e
    return parse_fields(body), None


@router.get(
    "",
    response_model=list[SauceResponse],
    summary="List sauces",
)
async def list_sauces(
    request: Request,
    user_id: CurrentUserId,
    service: Annotated[SauceService, Depends(get_sauce_service)],
) -> list[SauceResponse]:
    sauces = await service.list_sauces()
    return [to_response(request, sauce) for sauce in sauces]


@router.get(
    "/{sauce_id}",
    response_model=SauceResponse,
    summary="Get a sauce",
)
async def get_sauce(
    request: Request,
    sauce_id: UUID,
    user_id: CurrentUserId,
    service: Annotated[SauceService, Depends(get_sauce_service)],
) -> SauceResponse:
    sauce = await service.get_sauce(sauce_id)
    return to_response(request, sauce)


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a sauce",
    description="Multipart request with a `sauce` JSON string and an `image` file.",
)
async def create_sauce(
    user_id: CurrentUserId,
    service: Annotated[SauceService, Depends(get_sauce_service)],
    settings: Annotated[Settings, Depends(get_settings)],
    sauce: Annotated[str, Form(description="Sauce fields as a JSON string")],
    image: Annotated[Optional[UploadFile], File(description="Sauce image")] = None,
) -> MessageResponse:
    """
    Create a sauce owned by the authenticated user.

    Any ``userId``, counters or voter lists in the payload are ignored.
    """
    fields = parse_fields(sauce)
    upload = await read_upload(image, settings.max_upload_bytes) if image else None
    created = await service.create_sauce(user_id, fields, upload)
    logger.info("Sauce create request completed", sauce_id=str(created.id))
    return MessageResponse(message="Sauce saved")


@router.put(
    "/{sauce_id}",
    response_model=MessageResponse,
    summary="Update a sauce",
    description="JSON body, or multipart with a `sauce` JSON string and a new `image`.",
)
async def update_sauce(
    request: Request,
    sauce_id: UUID,
    user_id: CurrentUserId,
    service: Annotated[SauceService, Depends(get_sauce_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageResponse:
    fields, image = await read_update_request(request, settings.max_upload_bytes)
    await service.update_sauce(sauce_id, user_id, fields, image)
    return MessageResponse(message="Sauce updated")


@router.delete(
    "/{sauce_id}",
    response_model=MessageResponse,
    summary="Delete a sauce",
)
async def delete_sauce(
    sauce_id: UUID,
    user_id: CurrentUserId,
    service: Annotated[SauceService, Depends(get_sauce_service)],
) -> MessageResponse:
    await service.delete_sauce(sauce_id, user_id)
    return MessageResponse(message="Sauce deleted")


@router.post(
    "/{sauce_id}/like",
    response_model=MessageResponse,
    summary="Like, dislike or cancel a vote",
)
async def vote(
    sauce_id: UUID,
    payload: LikeRequest,
    user_id: CurrentUserId,
    service: Annotated[SauceService, Depends(get_sauce_service)],
) -> MessageResponse:
    intent = VoteIntent.from_value(payload.like)
    await service.vote(sauce_id, user_id, intent)
    return MessageResponse(message=VOTE_MESSAGES[intent])
