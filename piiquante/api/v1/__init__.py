"""
API v1 package initialization.

Routers are mounted under ``/api`` by the application.
"""

from piiquante.api.v1.auth import router as auth_router
from piiquante.api.v1.sauces import router as sauces_router

__all__ = ["auth_router", "sauces_router"]
