"""
Tests for the authentication service: registration, login and token checks.
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from piiquante.core.exceptions import (
    ConflictError,
    InvalidInputError,
    UnauthenticatedError,
    UnavailableError,
)
from piiquante.core.security import TokenSigner
from piiquante.services.auth.service import AuthService


@pytest.fixture
def auth_service(user_repo, hasher, signer) -> AuthService:
    return AuthService(user_repo, hasher, signer)


# ============================================================================
# Registration Tests
# ============================================================================


class TestRegister:
    @pytest.mark.asyncio
    async def test_stores_hash_not_password(self, auth_service, user_repo, hasher):
        user_id = await auth_service.register("alice@example.com", "correct-horse")

        user = await user_repo.get_by_id(user_id)
        assert user.password_hash != "correct-horse"
        assert hasher.verify("correct-horse", user.password_hash)

    @pytest.mark.asyncio
    async def test_email_is_normalised(self, auth_service, user_repo):
        await auth_service.register("  Alice@Example.COM ", "correct-horse")

        assert "alice@example.com" in user_repo.by_email

    @pytest.mark.asyncio
    async def test_seven_character_password_rejected(self, auth_service, user_repo):
        with pytest.raises(InvalidInputError) as exc_info:
            await auth_service.register("alice@example.com", "short12")

        assert exc_info.value.code == "WEAK_PASSWORD"
        assert user_repo.by_email == {}

    @pytest.mark.asyncio
    async def test_eight_characters_is_enough(self, auth_service):
        await auth_service.register("alice@example.com", "exactly8")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["", "not-an-email", "a@", "@example.com", "a b@example.com"])
    async def test_invalid_email_rejected(self, auth_service, email):
        with pytest.raises(InvalidInputError) as exc_info:
            await auth_service.register(email, "correct-horse")
        assert exc_info.value.code == "INVALID_EMAIL"

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, auth_service):
        await auth_service.register("alice@example.com", "correct-horse")

        with pytest.raises(ConflictError):
            await auth_service.register("ALICE@example.com", "another-password")

    @pytest.mark.asyncio
    async def test_insert_race_maps_to_conflict(self, auth_service, user_repo):
        await auth_service.register("alice@example.com", "correct-horse")
        # Lookup misses, insert hits the unique constraint.
        user_repo.get_by_email = AsyncMock(return_value=None)

        with pytest.raises(ConflictError):
            await auth_service.register("alice@example.com", "correct-horse")

    @pytest.mark.asyncio
    async def test_database_failure_is_unavailable(self, hasher, signer):
        users = MagicMock()
        users.get_by_email = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("down"))
        )

        with pytest.raises(UnavailableError):
            await AuthService(users, hasher, signer).register(
                "alice@example.com", "correct-horse"
            )


# ============================================================================
# Login Tests
# ============================================================================


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_valid_credentials_issue_token(self, auth_service, signer):
        user_id = await auth_service.register("alice@example.com", "correct-horse")

        result = await auth_service.authenticate("Alice@example.com", "correct-horse")

        assert result.user_id == user_id
        assert signer.user_id_from(result.token) == user_id

    @pytest.mark.asyncio
    async def test_unknown_email_and_wrong_password_look_identical(
        self, auth_service, hasher
    ):
        await auth_service.register("alice@example.com", "correct-horse")
        hasher.dummy_verify = MagicMock(wraps=hasher.dummy_verify)

        with pytest.raises(UnauthenticatedError) as unknown:
            await auth_service.authenticate("nobody@example.com", "correct-horse")
        with pytest.raises(UnauthenticatedError) as wrong:
            await auth_service.authenticate("alice@example.com", "wrong-horse")

        assert unknown.value.to_dict() == wrong.value.to_dict()
        assert str(unknown.value) == str(wrong.value)
        hasher.dummy_verify.assert_called_once()


# ============================================================================
# Token Verification Tests
# ============================================================================


class TestVerify:
    def test_valid_token(self, auth_service, signer):
        user_id = uuid.uuid4()
        assert auth_service.verify(signer.issue_for_user(user_id)) == user_id

    @pytest.mark.parametrize("token", ["", "garbage"])
    def test_bad_tokens(self, auth_service, token):
        with pytest.raises(UnauthenticatedError):
            auth_service.verify(token)

    def test_expired_token(self, auth_service, signer):
        token = signer.sign({"sub": str(uuid.uuid4())}, ttl=timedelta(seconds=-1))

        with pytest.raises(UnauthenticatedError) as exc_info:
            auth_service.verify(token)
        assert exc_info.value.to_dict()["error"] == "Authentication failed"

    def test_foreign_signature(self, auth_service):
        foreign = TokenSigner(secret_key="x" * 40).issue_for_user(uuid.uuid4())

        with pytest.raises(UnauthenticatedError):
            auth_service.verify(foreign)
