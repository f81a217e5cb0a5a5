"""
Security utilities for password hashing and JWT session tokens.

This module provides:
- PasswordHasher: bcrypt hashing with a random per-password salt and a
  fixed cost factor
- TokenSigner: signing and verification of time-bounded bearer tokens

Both are built from Settings at startup and injected where needed.
"""

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from piiquante.core.config import Settings, get_settings
from piiquante.core.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Exception raised for token-related errors."""


class PasswordError(SecurityError):
    """Exception raised for password-related errors."""


class PasswordHasher:
    """
    One-way password hashing with bcrypt.

    The salt is generated per call by bcrypt and embedded in the hash, so two
    users with the same password never share a hash.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
            bcrypt__ident="2b",
        )

    def hash(self, password: str) -> str:
        """
        Hash a password.

        Args:
            password: Plain text password to hash

        Returns:
            bcrypt hash string

        Raises:
            PasswordError: If password is empty
        """
        if not password:
            logger.error("Attempted to hash empty password")
            raise PasswordError("Password cannot be empty", code="EMPTY_PASSWORD")
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a plain password against a stored hash.

        Malformed hashes count as a mismatch.

        Args:
            plain_password: Plain text password to verify
            hashed_password: Stored hash

        Returns:
            True if password matches, False otherwise
        """
        if not plain_password or not hashed_password:
            return False
        try:
            return self._context.verify(plain_password, hashed_password)
        except ValueError as e:
            logger.warning(
                "Stored password hash could not be parsed",
                error=str(e),
            )
            return False

    def dummy_verify(self) -> None:
        """Spend the same time as a real verification when no user matched."""
        self._context.dummy_verify()


class TokenSigner:
    """
    Signs and verifies session tokens.

    Tokens carry the user id as ``sub`` and are valid for ``ttl``.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(hours=24),
    ):
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = ttl

    def sign(
        self,
        claims: Dict[str, Any],
        ttl: Optional[timedelta] = None,
    ) -> str:
        """
        Create a signed access token.

        Args:
            claims: Claims to encode (``sub`` is expected)
            ttl: Optional lifetime overriding the default

        Returns:
            Encoded JWT string
        """
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + (ttl if ttl is not None else self.ttl)

        to_encode = dict(claims)
        to_encode.update(
            {
                "iat": issued_at,
                "exp": expires_at,
                "type": ACCESS_TOKEN_TYPE,
            }
        )
        token = jwt.encode(to_encode, self._secret_key, algorithm=self.algorithm)

        logger.debug(
            "Access token created",
            subject=claims.get("sub"),
            expires_at=expires_at.isoformat(),
        )
        return token

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a token.

        Args:
            token: JWT string

        Returns:
            Decoded claims

        Raises:
            TokenError: If the token is empty, malformed, expired, badly
                signed or not an access token
        """
        if not token:
            raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
        except JWTError as e:
            raise TokenError(
                "Invalid token",
                code="TOKEN_INVALID",
                error_type=type(e).__name__,
            ) from e

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise TokenError(
                "Token is not an access token",
                code="TOKEN_WRONG_TYPE",
                token_type=payload.get("type"),
            )

        return payload

    def issue_for_user(self, user_id: UUID) -> str:
        """Sign a token whose subject is the given user."""
        return self.sign({"sub": str(user_id)})

    def user_id_from(self, token: str) -> UUID:
        """
        Verify a token and return the user id it binds.

        Raises:
            TokenError: If the token is invalid or its subject is not a UUID
        """
        payload = self.verify(token)
        subject = payload.get("sub")
        try:
            return UUID(str(subject))
        except ValueError as e:
            raise TokenError(
                "Token subject is not a user id",
                code="TOKEN_BAD_SUBJECT",
            ) from e


def build_password_hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


def build_token_signer(settings: Settings) -> TokenSigner:
    return TokenSigner(
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(minutes=settings.access_token_expire_minutes),
    )


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Process-wide hasher built from the cached settings."""
    return build_password_hasher(get_settings())


@lru_cache
def get_token_signer() -> TokenSigner:
    """Process-wide token signer built from the cached settings."""
    return build_token_signer(get_settings())
