"""
Pytest configuration and shared test fixtures.

The application is configured for tests through environment variables set
before it is imported: a cheap bcrypt cost, no rate limiting and a throwaway
media directory. PostgreSQL is never needed: the repositories are replaced
by in-memory fakes through FastAPI dependency overrides.
"""

import os
import tempfile
import uuid
from typing import Any, Generator, Mapping, Optional

os.environ["APP_ENVIRONMENT"] = "test"
os.environ["APP_BCRYPT_ROUNDS"] = "4"
os.environ["APP_RATE_LIMIT_ENABLED"] = "false"
os.environ["APP_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["APP_MEDIA_ROOT"] = tempfile.mkdtemp(prefix="piiquante-media-")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from piiquante.api.deps import (
    get_asset_store,
    get_sauce_repository,
    get_user_repository,
)
from piiquante.core.exceptions import UnavailableError
from piiquante.core.security import PasswordHasher, TokenSigner
from piiquante.database.models.sauce import Sauce
from piiquante.database.models.user import User
from piiquante.main import app
from piiquante.services.assets.store import ALLOWED_IMAGE_TYPES, LocalAssetStore
from piiquante.services.auth.repository import normalize_email
from piiquante.services.sauces.repository import UPDATABLE_FIELDS

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


# ============================================================================
# In-memory fakes
# ============================================================================


class FakeUserRepository:
    """Dict-backed stand-in for UserRepository."""

    def __init__(self):
        self.by_email: dict[str, User] = {}

    async def get_by_email(self, email: str) -> Optional[User]:
        return self.by_email.get(normalize_email(email))

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        for user in self.by_email.values():
            if user.id == user_id:
                return user
        return None

    async def add(self, user: User) -> User:
        user.email = normalize_email(user.email)
        if user.email in self.by_email:
            raise IntegrityError("INSERT INTO users", {}, Exception("duplicate key"))
        if user.id is None:
            user.id = uuid.uuid4()
        self.by_email[user.email] = user
        return user


class FakeSauceRepository:
    """
    Dict-backed stand-in for SauceRepository.

    ``fail_next_save`` makes the next save raise the given exception.
    """

    def __init__(self):
        self.rows: dict[uuid.UUID, Sauce] = {}
        self.commits = 0
        self.rollbacks = 0
        self.fail_next_save: Optional[Exception] = None

    async def find_by_id(self, sauce_id: uuid.UUID) -> Optional[Sauce]:
        return self.rows.get(sauce_id)

    async def find_all(self) -> list[Sauce]:
        return list(self.rows.values())

    async def save(self, sauce: Sauce) -> Sauce:
        if self.fail_next_save is not None:
            error, self.fail_next_save = self.fail_next_save, None
            raise error
        if sauce.id is None:
            sauce.id = uuid.uuid4()
        sauce.version = (sauce.version or 0) + 1
        self.rows[sauce.id] = sauce
        return sauce

    async def update_fields(self, sauce: Sauce, changes: Mapping[str, Any]) -> Sauce:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
        for field, value in changes.items():
            setattr(sauce, field, value)
        return await self.save(sauce)

    async def delete(self, sauce: Sauce) -> None:
        self.rows.pop(sauce.id, None)

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


class FakeAssetStore:
    """Records stored and released refs; optionally fails on release."""

    def __init__(self, fail_release: bool = False):
        self.stored: dict[str, bytes] = {}
        self.released: list[str] = []
        self.fail_release = fail_release
        self._counter = 0

    async def store(self, data: bytes, content_type: str, filename: str) -> str:
        extension = ALLOWED_IMAGE_TYPES[content_type]
        self._counter += 1
        ref = f"{filename.rsplit('.', 1)[0]}_{self._counter}.{extension}"
        self.stored[ref] = data
        return ref

    async def release(self, ref: str) -> None:
        if self.fail_release:
            raise UnavailableError("Asset release failed", ref=ref)
        self.released.append(ref)
        self.stored.pop(ref, None)


def make_sauce(owner_id: Optional[uuid.UUID] = None, **overrides: Any) -> Sauce:
    """Build a transient Sauce with sensible defaults."""
    values: dict[str, Any] = {
        "id": uuid.uuid4(),
        "user_id": owner_id or uuid.uuid4(),
        "name": "Fire Breath",
        "manufacturer": "Dragon Foods",
        "description": "Smoky habanero sauce",
        "main_pepper": "Habanero",
        "image_ref": "fire_breath_1700000000000.png",
        "heat": 7,
        "likes": 0,
        "dislikes": 0,
        "users_liked": [],
        "users_disliked": [],
        "version": 1,
    }
    values.update(overrides)
    return Sauce(**values)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def user_repo() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def sauce_repo() -> FakeSauceRepository:
    return FakeSauceRepository()


@pytest.fixture
def asset_store() -> FakeAssetStore:
    return FakeAssetStore()


@pytest.fixture
def hasher() -> PasswordHasher:
    """bcrypt hasher with the minimum cost to keep tests fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def signer() -> TokenSigner:
    return TokenSigner(secret_key=TEST_SECRET)


@pytest.fixture
def local_store(tmp_path) -> LocalAssetStore:
    return LocalAssetStore(tmp_path / "images", max_bytes=1024)


@pytest.fixture
def media_store(tmp_path) -> LocalAssetStore:
    return LocalAssetStore(tmp_path / "media", max_bytes=5 * 1024 * 1024)


@pytest.fixture
def client(
    user_repo: FakeUserRepository,
    sauce_repo: FakeSauceRepository,
    media_store: LocalAssetStore,
) -> Generator[TestClient, None, None]:
    """
    Test client with repositories and the asset store replaced.

    Images are written to a per-test directory so tests can check that
    files appear and disappear.

    Yields:
        TestClient: Synchronous test client for the FastAPI app
    """
    app.dependency_overrides[get_user_repository] = lambda: user_repo
    app.dependency_overrides[get_sauce_repository] = lambda: sauce_repo
    app.dependency_overrides[get_asset_store] = lambda: media_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def signup_and_login(client: TestClient):
    """Register a user and return ``(user_id, auth_headers)``."""

    def _signup_and_login(email: str, password: str = "correct-horse-battery"):
        response = client.post(
            "/api/auth/signup", json={"email": email, "password": password}
        )
        assert response.status_code == 201, response.text
        response = client.post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        assert response.status_code == 200, response.text
        body = response.json()
        return uuid.UUID(body["userId"]), {"Authorization": f"Bearer {body['token']}"}

    return _signup_and_login
