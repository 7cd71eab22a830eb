"""Moderation-related Pydantic schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from bookclub_stage.models.moderation import (
    EntityKind,
    ModerationAction,
    ReportReason,
    ReportType,
)
from bookclub_stage.schemas.common import OrmSnapshot


class EventCreate(BaseModel):
    """Schema for submitting an event for approval."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=5000, description="Free-text event details")


class EventResponse(OrmSnapshot):
    """Schema for submitted event information returned by the API."""

    id: str
    kind: EntityKind = EntityKind.EVENT
    submitter_id: str
    title: str
    description: str
    status: str
    resolution_note: str | None = None
    decided_by: str | None = None
    created_at: datetime
    updated_at: datetime


class EventUpdate(BaseModel):
    """Schema for editing the details of a submitted event.

    Omitted fields keep their current value; the status is never editable here.
    """

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)


class EventUpdateResponse(BaseModel):
    """An edited event plus the attendee notifications it produced."""

    event: EventResponse
    notification_ids: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PendingEventStats(BaseModel):
    """Size of the event approval queue."""

    total_pending: int = 0
    new_this_week: int = 0


class ReportCreate(BaseModel):
    """Schema for filing a report."""

    report_type: ReportType
    reason: ReportReason
    description: str = Field("", max_length=5000)
    content_id: str = Field(..., min_length=1)
    content_owner_id: str | None = None
    content_preview: str = Field("", max_length=500)


class ReportResponse(OrmSnapshot):
    """Schema for report information returned by the API."""

    id: str
    kind: EntityKind = EntityKind.REPORT
    reporter_id: str
    report_type: str
    reason: str
    description: str
    content_id: str
    content_owner_id: str | None = None
    content_preview: str
    status: str
    resolution_note: str | None = None
    assigned_admin_id: str | None = None
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None


class ReportStatsResponse(BaseModel):
    """Counts of reports per status plus recent volume."""

    total_reports: int = 0
    pending_reports: int = 0
    investigating_reports: int = 0
    resolved_reports: int = 0
    dismissed_reports: int = 0
    reports_this_week: int = 0


class TransitionRequest(BaseModel):
    """Schema for requesting a moderation transition."""

    action: ModerationAction
    note: str | None = Field(None, max_length=2000, description="Resolution note")


class TransitionResponse(BaseModel):
    """Result of a committed transition; emission problems appear as warnings."""

    entity_id: str
    previous_status: str
    status: str
    notification_ids: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
