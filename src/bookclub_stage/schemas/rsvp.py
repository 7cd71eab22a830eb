"""RSVP-related Pydantic schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from bookclub_stage.models.rsvp import RsvpStatus
from bookclub_stage.schemas.common import OrmSnapshot


class RsvpRequest(BaseModel):
    """Schema for answering an event invitation."""

    status: RsvpStatus


class RsvpResponse(OrmSnapshot):
    id: str
    event_id: str
    user_id: str
    status: str
    created_at: datetime
    updated_at: datetime
