"""
Tests for SauceService orchestration.
"""

import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from conftest import make_sauce
from piiquante.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    UnavailableError,
)
from piiquante.schemas.sauce import SauceFields
from piiquante.services.assets.store import ImageUpload
from piiquante.services.sauces.service import SauceService

FIELDS = SauceFields(
    name="Fire Breath",
    manufacturer="Dragon Foods",
    description="Smoky habanero sauce",
    main_pepper="Habanero",
    heat=7,
)
IMAGE = ImageUpload(data=b"png", content_type="image/png", filename="fire.png")


@pytest.fixture
def service(sauce_repo, asset_store) -> SauceService:
    return SauceService(sauce_repo, asset_store)


def db_down() -> OperationalError:
    return OperationalError("SELECT", {}, Exception("connection refused"))


# ============================================================================
# Read Tests
# ============================================================================


class TestRead:
    @pytest.mark.asyncio
    async def test_get_unknown_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.get_sauce(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_returns_all(self, service, sauce_repo):
        for _ in range(3):
            sauce = make_sauce()
            sauce_repo.rows[sauce.id] = sauce

        assert len(await service.list_sauces()) == 3

    @pytest.mark.asyncio
    async def test_database_failure_is_unavailable(self, service, sauce_repo):
        sauce_repo.find_all = AsyncMock(side_effect=db_down())

        with pytest.raises(UnavailableError):
            await service.list_sauces()


# ============================================================================
# Create Tests
# ============================================================================


class TestCreate:
    @pytest.mark.asyncio
    async def test_creates_with_zero_votes(self, service, sauce_repo, asset_store):
        owner = uuid.uuid4()

        sauce = await service.create_sauce(owner, FIELDS, IMAGE)

        assert sauce_repo.rows[sauce.id] is sauce
        assert sauce.user_id == owner
        assert sauce.main_pepper == "Habanero"
        assert (sauce.likes, sauce.dislikes) == (0, 0)
        assert sauce.users_liked == [] and sauce.users_disliked == []
        assert sauce.image_ref in asset_store.stored
        assert sauce_repo.commits == 1

    @pytest.mark.asyncio
    async def test_image_is_required(self, service, asset_store):
        with pytest.raises(InvalidInputError):
            await service.create_sauce(uuid.uuid4(), FIELDS, None)
        assert asset_store.stored == {}

    @pytest.mark.asyncio
    async def test_failed_save_releases_image(self, service, sauce_repo, asset_store):
        sauce_repo.fail_next_save = db_down()

        with pytest.raises(UnavailableError):
            await service.create_sauce(uuid.uuid4(), FIELDS, IMAGE)

        assert asset_store.stored == {}
        assert len(asset_store.released) == 1
        assert sauce_repo.rows == {}


# ============================================================================
# Update Tests
# ============================================================================


class TestUpdate:
    @pytest.mark.asyncio
    async def test_owner_updates_fields_and_keeps_votes(self, service, sauce_repo):
        owner, voter = uuid.uuid4(), uuid.uuid4()
        sauce = make_sauce(owner, users_liked=[voter], likes=1)
        sauce_repo.rows[sauce.id] = sauce
        changed = FIELDS.model_copy(update={"name": "Ice Breath", "heat": 2})

        updated = await service.update_sauce(sauce.id, owner, changed)

        assert updated.name == "Ice Breath"
        assert updated.heat == 2
        assert updated.user_id == owner
        assert updated.users_liked == [voter]
        assert updated.likes == 1

    @pytest.mark.asyncio
    async def test_non_owner_forbidden(self, service, sauce_repo):
        sauce = make_sauce(uuid.uuid4())
        sauce_repo.rows[sauce.id] = sauce

        with pytest.raises(ForbiddenError):
            await service.update_sauce(sauce.id, uuid.uuid4(), FIELDS)

        assert sauce_repo.commits == 0

    @pytest.mark.asyncio
    async def test_unknown_sauce_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.update_sauce(uuid.uuid4(), uuid.uuid4(), FIELDS)

    @pytest.mark.asyncio
    async def test_image_replaced(self, service, sauce_repo, asset_store):
        owner = uuid.uuid4()
        sauce = make_sauce(owner, image_ref="old.png")
        sauce_repo.rows[sauce.id] = sauce

        await service.update_sauce(sauce.id, owner, FIELDS, IMAGE)

        assert sauce.image_ref != "old.png"
        assert asset_store.released == ["old.png"]


# ============================================================================
# Delete Tests
# ============================================================================


class TestDelete:
    @pytest.mark.asyncio
    async def test_owner_deletes(self, service, sauce_repo, asset_store):
        owner = uuid.uuid4()
        sauce = make_sauce(owner, image_ref="bye.png")
        sauce_repo.rows[sauce.id] = sauce

        await service.delete_sauce(sauce.id, owner)

        assert sauce_repo.rows == {}
        assert asset_store.released == ["bye.png"]

    @pytest.mark.asyncio
    async def test_unknown_sauce_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.delete_sauce(uuid.uuid4(), uuid.uuid4())


# ============================================================================
# Vote Tests
# ============================================================================


class TestVote:
    @pytest.mark.asyncio
    async def test_like_is_persisted(self, service, sauce_repo):
        sauce = make_sauce()
        sauce_repo.rows[sauce.id] = sauce
        voter = uuid.uuid4()

        await service.vote(sauce.id, voter, 1)

        assert sauce.likes == 1
        assert sauce.users_liked == [voter]
        assert sauce.version == 2
        assert sauce_repo.commits == 1

    @pytest.mark.asyncio
    async def test_repeated_vote_does_not_write(self, service, sauce_repo):
        voter = uuid.uuid4()
        sauce = make_sauce(users_liked=[voter], likes=1)
        sauce_repo.rows[sauce.id] = sauce

        await service.vote(sauce.id, voter, 1)

        assert sauce.version == 1
        assert sauce_repo.commits == 0

    @pytest.mark.asyncio
    async def test_invalid_vote_rejected_before_lookup(self, service, sauce_repo):
        sauce_repo.find_by_id = AsyncMock()

        with pytest.raises(InvalidInputError):
            await service.vote(uuid.uuid4(), uuid.uuid4(), 5)

        sauce_repo.find_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_sauce_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.vote(uuid.uuid4(), uuid.uuid4(), 1)

    @pytest.mark.asyncio
    async def test_stale_write_is_conflict(self, service, sauce_repo):
        sauce = make_sauce()
        sauce_repo.rows[sauce.id] = sauce
        sauce_repo.fail_next_save = ConflictError("stale", code="STALE_RECORD")

        with pytest.raises(ConflictError):
            await service.vote(sauce.id, uuid.uuid4(), -1)

        assert sauce_repo.rollbacks == 1
