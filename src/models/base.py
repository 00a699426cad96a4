"""Shared Pydantic base models and utilities."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through.

    The tracking engine works on the local calendar with naive datetimes.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class AdheraBase(BaseModel):
    """Base model with shared config for all Adhera schemas."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )
