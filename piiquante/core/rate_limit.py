"""
Request rate limiting with slowapi.

The limiter is keyed on the client address and applied to the
authentication endpoints. Tests and local runs disable it through
``APP_RATE_LIMIT_ENABLED=false``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from piiquante.core.config import get_settings


def auth_rate_limit() -> str:
    return get_settings().auth_rate_limit


limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)
