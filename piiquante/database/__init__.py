"""
Database package.

- base: declarative base and mixins
- connection: async engine and session management
- models: ORM models (users, sauces)

Submodules are imported explicitly where needed.
"""

__all__ = []
