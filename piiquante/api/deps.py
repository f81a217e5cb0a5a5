"""
FastAPI dependencies for authentication and service construction.

Services are built per request from the request's database session and the
process-wide components (settings, password hasher, token signer, asset
store). Tests replace any of these factories through
``app.dependency_overrides``.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from piiquante.core.config import Settings, get_settings
from piiquante.core.exceptions import UnauthenticatedError
from piiquante.core.logging import get_logger, set_user_id
from piiquante.core.security import (
    PasswordHasher,
    TokenSigner,
    get_password_hasher,
    get_token_signer,
)
from piiquante.database.connection import get_db
from piiquante.services.assets.store import AssetStore, build_asset_store
from piiquante.services.auth.repository import UserRepository
from piiquante.services.auth.service import AuthService, verify_token
from piiquante.services.sauces.repository import SauceRepository
from piiquante.services.sauces.service import SauceService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)

_asset_store: Optional[AssetStore] = None


def get_asset_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> AssetStore:
    global _asset_store
    if _asset_store is None:
        _asset_store = build_asset_store(settings)
    return _asset_store


def get_user_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UserRepository:
    return UserRepository(db)


def get_sauce_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SauceRepository:
    return SauceRepository(db)


def get_auth_service(
    users: Annotated[UserRepository, Depends(get_user_repository)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    signer: Annotated[TokenSigner, Depends(get_token_signer)],
) -> AuthService:
    """
    Get authentication service instance.

    Returns:
        AuthService: Authentication service bound to the request session
    """
    return AuthService(users, hasher, signer)


def get_sauce_service(
    sauces: Annotated[SauceRepository, Depends(get_sauce_repository)],
    assets: Annotated[AssetStore, Depends(get_asset_store)],
) -> SauceService:
    return SauceService(sauces, assets)


async def get_current_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    signer: Annotated[TokenSigner, Depends(get_token_signer)],
) -> UUID:
    """
    Validate the bearer token and return the authenticated user id.

    Every failure raises the same UnauthenticatedError, whatever the cause.

    Args:
        credentials: HTTP Bearer token from Authorization header
        signer: Token signer

    Returns:
        UUID: Authenticated user id

    Raises:
        UnauthenticatedError: If the token is missing, malformed, expired
            or badly signed
    """
    if credentials is None or not credentials.credentials:
        logger.warning("Authentication failed: No credentials provided")
        raise UnauthenticatedError("Missing bearer token", code="INVALID_TOKEN")

    user_id = verify_token(signer, credentials.credentials)

    set_user_id(str(user_id))
    return user_id


CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
