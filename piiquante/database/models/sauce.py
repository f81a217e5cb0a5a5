"""
Sauce model with rating counters and voter sets.

Invariants kept by the rating engine and backed by CHECK constraints where
the database can express them:
- likes == len(users_liked) and dislikes == len(users_disliked)
- a user id is never in both users_liked and users_disliked
- user_id (the owner) never changes after creation

``version`` is the mapper's version counter: SQLAlchemy issues every UPDATE
and DELETE with ``WHERE version = <loaded version>`` and raises
``StaleDataError`` when another request got there first.
"""

import uuid

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from piiquante.database.base import BaseModel

MIN_HEAT = 1
MAX_HEAT = 10


class Sauce(BaseModel):
    """
    A user-submitted sauce with an image and a like/dislike rating.

    Attributes:
        id: Unique sauce identifier (UUID)
        user_id: Owner, the user who created the sauce
        name: Sauce name
        manufacturer: Manufacturer name
        description: Free text description
        main_pepper: Main spicy ingredient
        image_ref: Key of the stored image in the asset store
        heat: Heat level between 1 and 10
        likes: Number of users who like the sauce
        dislikes: Number of users who dislike the sauce
        users_liked: Ids of users who like the sauce
        users_disliked: Ids of users who dislike the sauce
        version: Optimistic concurrency counter
    """

    __tablename__ = "sauces"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owner of the sauce",
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    manufacturer: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)

    main_pepper: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Main spicy ingredient",
    )

    image_ref: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        comment="Asset store key of the sauce image",
    )

    heat: Mapped[int] = mapped_column(Integer, nullable=False)

    likes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    dislikes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    users_liked: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)),
        nullable=False,
        default=list,
    )

    users_disliked: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)),
        nullable=False,
        default=list,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            f"heat BETWEEN {MIN_HEAT} AND {MAX_HEAT}", name="heat_range"
        ),
        CheckConstraint("likes >= 0", name="likes_non_negative"),
        CheckConstraint("dislikes >= 0", name="dislikes_non_negative"),
        CheckConstraint(
            "likes = coalesce(cardinality(users_liked), 0)", name="likes_match_voters"
        ),
        CheckConstraint(
            "dislikes = coalesce(cardinality(users_disliked), 0)",
            name="dislikes_match_voters",
        ),
        CheckConstraint(
            "NOT (users_liked && users_disliked)", name="voters_disjoint"
        ),
        {"comment": "Rated sauces"},
    )

    def __repr__(self) -> str:
        return (
            f"<Sauce(id={self.id}, name={self.name!r}, "
            f"likes={self.likes}, dislikes={self.dislikes})>"
        )
