"""Roble account access and session restore."""

from .remote import AuthRemoteDataSource
from .repository import AuthRepository, SessionStore

__all__ = ["AuthRemoteDataSource", "AuthRepository", "SessionStore"]
