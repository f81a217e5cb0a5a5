"""
Authentication service implementation.

Registers users with a bcrypt password hash, authenticates them against the
stored hash and issues 24h bearer tokens, and verifies tokens presented on
later requests. Every authentication failure raises the same
``UnauthenticatedError`` so callers cannot tell an unknown email from a
wrong password.
"""

import uuid
from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from piiquante.core.exceptions import (
    ConflictError,
    InvalidInputError,
    UnauthenticatedError,
    UnavailableError,
)
from piiquante.core.logging import get_logger
from piiquante.core.security import PasswordHasher, TokenError, TokenSigner
from piiquante.database.models.user import User
from piiquante.services.auth.repository import UserRepository, normalize_email

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class LoginResult:
    user_id: uuid.UUID
    token: str


def _credentials_rejected(reason: str) -> UnauthenticatedError:
    return UnauthenticatedError("Invalid credentials", code="INVALID_CREDENTIALS", reason=reason)


def verify_token(signer: TokenSigner, token: str) -> uuid.UUID:
    """
    Return the user id bound to a bearer token.

    Raises:
        UnauthenticatedError: If the token is missing, malformed,
            expired or badly signed
    """
    try:
        return signer.user_id_from(token)
    except TokenError as e:
        logger.info("Token rejected", code=e.code)
        raise UnauthenticatedError(
            "Invalid token", code="INVALID_TOKEN", reason=e.code
        ) from e


class AuthService:
    """
    Authentication service for registration, login and token checks.

    Args:
        users: User repository bound to the request session
        hasher: Password hasher with the configured bcrypt cost
        signer: Token signer with the configured key and lifetime
    """

    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        signer: TokenSigner,
    ):
        self.users = users
        self.hasher = hasher
        self.signer = signer
        self.logger = logger.bind(service="auth")

    async def register(self, email: str, password: str) -> uuid.UUID:
        """
        Register a new user.

        Args:
            email: Email address, normalised before storage
            password: Raw password, at least 8 characters

        Returns:
            Id of the created user

        Raises:
            InvalidInputError: If the email is malformed or the password too short
            ConflictError: If the email is already registered
            UnavailableError: If the database fails
        """
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                code="WEAK_PASSWORD",
            )
        email = normalize_email(email)
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            raise InvalidInputError(
                "Email address is not valid", code="INVALID_EMAIL"
            ) from e

        self.logger.info("User registration started")

        try:
            if await self.users.get_by_email(email) is not None:
                self.logger.warning("Registration failed - email already exists")
                raise ConflictError(
                    "An account with this email already exists",
                    code="EMAIL_TAKEN",
                )

            user = User(
                id=uuid.uuid4(),
                email=email,
                password_hash=self.hasher.hash(password),
            )
            await self.users.add(user)
        except IntegrityError as e:
            self.logger.warning("Registration lost a uniqueness race")
            raise ConflictError(
                "An account with this email already exists",
                code="EMAIL_TAKEN",
            ) from e
        except SQLAlchemyError as e:
            self.logger.error(
                "Registration failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UnavailableError("Database error during registration") from e

        self.logger.info("User registered successfully", user_id=str(user.id))
        return user.id

    async def authenticate(self, email: str, password: str) -> LoginResult:
        """
        Check credentials and issue a session token.

        Args:
            email: Email address, any case
            password: Raw password

        Returns:
            The user id and a signed bearer token

        Raises:
            UnauthenticatedError: If the email is unknown or the password wrong
            UnavailableError: If the database fails
        """
        try:
            user = await self.users.get_by_email(email)
        except SQLAlchemyError as e:
            self.logger.error(
                "Login lookup failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UnavailableError("Database error during login") from e

        if user is None:
            self.hasher.dummy_verify()
            self.logger.warning("Login failed", reason="unknown_email")
            raise _credentials_rejected("unknown_email")

        if not self.hasher.verify(password, user.password_hash):
            self.logger.warning(
                "Login failed", reason="bad_password", user_id=str(user.id)
            )
            raise _credentials_rejected("bad_password")

        token = self.signer.issue_for_user(user.id)
        self.logger.info("User logged in", user_id=str(user.id))
        return LoginResult(user_id=user.id, token=token)

    def verify(self, token: str) -> uuid.UUID:
        return verify_token(self.signer, token)
