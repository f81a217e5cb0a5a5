"""
Sauce schemas for request/response validation.

Requests and responses use the camelCase names of the web front end
(``mainPepper``, ``usersLiked``, ``_id``). Unknown request fields, including
``userId``, ``likes`` and the voter lists, are ignored: owner and votes are
never taken from a client.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from piiquante.database.models.sauce import MAX_HEAT, MIN_HEAT


class SauceFields(BaseModel):
    """
    Client editable sauce fields.

    Used for creation and for updates; an update replaces every field.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "name": "Fire Breath",
                "manufacturer": "Dragon Foods",
                "description": "Smoky habanero sauce",
                "mainPepper": "Habanero",
                "heat": 7,
            }
        },
    )

    name: str = Field(..., min_length=1, max_length=200)
    manufacturer: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    main_pepper: str = Field(
        ...,
        alias="mainPepper",
        min_length=1,
        max_length=200,
        description="Main spicy ingredient",
    )
    heat: int = Field(
        ...,
        ge=MIN_HEAT,
        le=MAX_HEAT,
        description=f"Heat level from {MIN_HEAT} to {MAX_HEAT}",
    )

    @field_validator("heat", mode="before")
    @classmethod
    def reject_bool_heat(cls, value):
        # Multipart forms send numbers as strings; booleans are never valid.
        if isinstance(value, bool):
            raise ValueError("Heat must be a number")
        return value


class LikeRequest(BaseModel):
    """Vote request: 1 likes, -1 dislikes, 0 cancels the current vote."""

    model_config = ConfigDict(extra="ignore")

    like: int = Field(..., description="One of -1, 0, 1", examples=[1])

    @field_validator("like", mode="before")
    @classmethod
    def validate_like(cls, value):
        if isinstance(value, bool) or not isinstance(value, int) or value not in (-1, 0, 1):
            raise ValueError("like must be one of -1, 0, 1")
        return value


class SauceResponse(BaseModel):
    """Sauce as returned to clients."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID = Field(..., alias="_id")
    user_id: UUID = Field(..., alias="userId", description="Owner of the sauce")
    name: str
    manufacturer: str
    description: str
    main_pepper: str = Field(..., alias="mainPepper")
    image_url: str = Field(..., alias="imageUrl")
    heat: int
    likes: int
    dislikes: int
    users_liked: list[UUID] = Field(default_factory=list, alias="usersLiked")
    users_disliked: list[UUID] = Field(default_factory=list, alias="usersDisliked")
