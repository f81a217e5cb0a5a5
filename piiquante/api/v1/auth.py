"""
Authentication API endpoints.

- ``POST /api/auth/signup`` creates an account
- ``POST /api/auth/login`` exchanges credentials for a 24h bearer token

Both endpoints are rate limited per client address. Domain errors raised by
the service are turned into responses by the application exception handlers.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from piiquante.api.deps import get_auth_service
from piiquante.core.logging import get_logger
from piiquante.core.rate_limit import auth_rate_limit, limiter
from piiquante.schemas.auth import (
    LoginRequest,
    LoginResponse,
    SignupRequest,
    SignupResponse,
)
from piiquante.services.auth.service import AuthService

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user account",
    description="Create a new user account with email and password.",
)
@limiter.limit(auth_rate_limit)
async def signup(
    request: Request,
    payload: SignupRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> SignupResponse:
    """
    Register a new user account.

    Raises:
        InvalidInputError: 400 if the email or password is rejected
        ConflictError: 409 if the email is already registered
    """
    user_id = await auth_service.register(payload.email, payload.password)
    return SignupResponse(message="User created", user_id=user_id)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="User login",
    description="Authenticate with email and password. "
    "Returns the user id and a bearer token valid for 24 hours.",
)
@limiter.limit(auth_rate_limit)
async def login(
    request: Request,
    payload: LoginRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    result = await auth_service.authenticate(payload.email, payload.password)
    return LoginResponse(user_id=result.user_id, token=result.token)
