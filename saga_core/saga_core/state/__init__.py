"""Persistent profile storage (SQLAlchemy 2.0 async)."""

from saga_core.state.profile_store import SqlProfileStore
from saga_core.state.repository import ProfileRepository
from saga_core.state.tables import Base, UserProfileTable

__all__ = [
    "Base",
    "ProfileRepository",
    "SqlProfileStore",
    "UserProfileTable",
]
