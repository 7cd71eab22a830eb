"""Comment-related Pydantic schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from bookclub_stage.schemas.common import OrmSnapshot
from bookclub_stage.schemas.mention import Mention


class CommentCreate(BaseModel):
    """Schema for posting a comment on an event."""

    body: str = Field(..., min_length=1, max_length=5000)
    parent_comment_id: str | None = None


class CommentResponse(OrmSnapshot):
    """Schema for comment information returned by the API."""

    id: str
    event_id: str
    author_id: str
    body: str
    parent_comment_id: str | None = None
    mentions: list[Mention] = Field(default_factory=list)
    created_at: datetime
    warnings: list[str] = Field(default_factory=list)
