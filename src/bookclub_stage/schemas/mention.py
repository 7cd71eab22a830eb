"""Mention-related Pydantic schemas."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Mention(BaseModel):
    """A resolved ``@name`` reference: half-open ``[start_index, end_index)`` span."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: str
    start_index: int = Field(..., ge=0)
    end_index: int = Field(..., ge=1)

    @model_validator(mode="after")
    def _check_span(self) -> Mention:
        if self.end_index <= self.start_index:
            raise ValueError("end_index must be greater than start_index")
        return self


class DirectoryEntry(BaseModel):
    """Identity and display name offered by the user directory."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: str
