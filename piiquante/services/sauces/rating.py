"""Like/dislike vote state machine.

A user's vote on a sauce is one of three states, derived from membership in
``users_liked`` / ``users_disliked``. Each of the three intents is a legal
transition from every state:

    intent   NEUTRAL     LIKED       DISLIKED
    LIKE     LIKED       LIKED       LIKED
    CANCEL   NEUTRAL     NEUTRAL     NEUTRAL
    DISLIKE  DISLIKED    DISLIKED    DISLIKED

so the target state depends only on the intent, and repeating an intent is a
no-op. Counters are always recomputed from the voter lists.
"""

import uuid
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Protocol

from piiquante.core.exceptions import InvalidInputError
from piiquante.core.logging import get_logger

logger = get_logger(__name__)


class VoteState(str, Enum):
    """Vote of one user on one sauce."""

    NEUTRAL = "neutral"
    LIKED = "liked"
    DISLIKED = "disliked"


class VoteIntent(IntEnum):
    """Value of the ``like`` field of a vote request."""

    LIKE = 1
    CANCEL = 0
    DISLIKE = -1

    @classmethod
    def from_value(cls, value: Any) -> "VoteIntent":
        """Convert a raw request value to a VoteIntent.

        Args:
            value: Raw ``like`` value

        Returns:
            VoteIntent enum value

        Raises:
            InvalidInputError: If value is not one of -1, 0, 1
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidInputError(
                "Vote must be one of -1, 0, 1", code="INVALID_VOTE", value=repr(value)
            )
        try:
            return cls(value)
        except ValueError:
            raise InvalidInputError(
                "Vote must be one of -1, 0, 1", code="INVALID_VOTE", value=value
            ) from None


TARGET_STATE: dict[VoteIntent, VoteState] = {
    VoteIntent.LIKE: VoteState.LIKED,
    VoteIntent.CANCEL: VoteState.NEUTRAL,
    VoteIntent.DISLIKE: VoteState.DISLIKED,
}

# All nine (state, intent) edges.
TRANSITIONS: dict[tuple[VoteState, VoteIntent], VoteState] = {
    (state, intent): target
    for state in VoteState
    for intent, target in TARGET_STATE.items()
}


class Votable(Protocol):
    likes: int
    dislikes: int
    users_liked: list[uuid.UUID]
    users_disliked: list[uuid.UUID]


@dataclass(frozen=True)
class VoteOutcome:
    previous: VoteState
    current: VoteState

    @property
    def changed(self) -> bool:
        return self.previous is not self.current


def current_state(sauce: Votable, user_id: uuid.UUID) -> VoteState:
    if user_id in (sauce.users_liked or []):
        return VoteState.LIKED
    if user_id in (sauce.users_disliked or []):
        return VoteState.DISLIKED
    return VoteState.NEUTRAL


def apply_vote(sauce: Votable, user_id: uuid.UUID, intent: Any) -> VoteOutcome:
    """Apply a vote to a sauce in place.

    The voter lists are reassigned rather than mutated so the ORM sees the
    change on ARRAY columns.

    Args:
        sauce: Sauce (or any object with the voter attributes)
        user_id: Voting user
        intent: LIKE, CANCEL or DISLIKE (raw -1/0/1 accepted)

    Returns:
        The previous and current vote state of the user

    Raises:
        InvalidInputError: If intent is not -1, 0 or 1
    """
    intent = VoteIntent.from_value(intent)
    previous = current_state(sauce, user_id)
    target = TRANSITIONS[(previous, intent)]

    liked = [u for u in (sauce.users_liked or []) if u != user_id]
    disliked = [u for u in (sauce.users_disliked or []) if u != user_id]
    if target is VoteState.LIKED:
        liked.append(user_id)
    elif target is VoteState.DISLIKED:
        disliked.append(user_id)

    if previous is not target:
        sauce.users_liked = liked
        sauce.users_disliked = disliked
    sauce.likes = len(sauce.users_liked or [])
    sauce.dislikes = len(sauce.users_disliked or [])

    logger.info(
        "Vote applied",
        user_id=str(user_id),
        intent=intent.name,
        previous=previous.value,
        current=target.value,
        likes=sauce.likes,
        dislikes=sauce.dislikes,
    )
    return VoteOutcome(previous=previous, current=target)
