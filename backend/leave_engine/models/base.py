from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

ZERO_HOURS = Decimal("0")


def utc_now() -> datetime:
    return datetime.now(UTC)


def hours_field(default: Any = ..., **kwargs: Any) -> Any:
    """An hour quantity stored as NUMERIC(10, 2)."""
    return Field(default=default, max_digits=10, decimal_places=2, **kwargs)


def timestamp_field(**kwargs: Any) -> Any:
    """A timezone-aware timestamp defaulting to now, in Python and in the database."""
    return Field(
        default_factory=utc_now,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
        **kwargs,
    )


def leave_type_fk() -> Any:
    """Column referencing leave_type.id; rows go with their leave type."""
    return Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False, index=True),
    )


class UUIDBase(SQLModel):
    """Base model with a UUID v4 primary key."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, sa_type=sa.Uuid)


class TimestampMixin(SQLModel):
    created_at: datetime = timestamp_field()


class UpdatedAtMixin(SQLModel):
    """Adds updated_at; writers bump it explicitly alongside the change."""

    updated_at: datetime = timestamp_field()
