"""Shared Pydantic helpers for schemas built from ORM rows."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from bookclub_stage.db.time import as_utc


class OrmSnapshot(BaseModel):
    """Immutable value object read from an ORM instance.

    Timestamps are normalised to UTC so snapshots compare equal regardless of
    which backend produced them.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("*", mode="after")
    @classmethod
    def _normalise_datetimes(cls, value: object) -> object:
        if isinstance(value, datetime):
            return as_utc(value)
        return value
