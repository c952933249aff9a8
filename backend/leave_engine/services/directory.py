# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class UserInfo(BaseModel):
    """User metadata from the User Directory."""

    id: uuid.UUID
    org_id: uuid.UUID
    name: str
    email: str
    manager_id: uuid.UUID | None = None
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)


@runtime_checkable
class UserDirectory(Protocol):
    """Interface for the User Directory (user/org CRUD lives elsewhere)."""

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        ...

    async def list_reports(self, manager_id: uuid.UUID) -> list[UserInfo]:
        """List the direct reports of a manager."""
        ...


class InMemoryUserDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, UserInfo] = {}

    def seed(self, user: UserInfo) -> None:
        """Seed a user for testing."""
        self._users[user.id] = user

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        return self._users.get(user_id)

    async def list_reports(self, manager_id: uuid.UUID) -> list[UserInfo]:
        """List the direct reports of a manager."""
        return [u for u in self._users.values() if u.manager_id == manager_id]


_user_directory: UserDirectory = InMemoryUserDirectory()


def get_user_directory() -> UserDirectory:
    """FastAPI dependency for the User Directory."""
    return _user_directory


def set_user_directory(directory: UserDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _user_directory
    _user_directory = directory
