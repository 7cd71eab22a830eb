"""Moderation-related endpoints: submitted events, reports and comments."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from bookclub_stage.api.v1.dependencies import (
    CurrentAdminDep,
    CurrentUserDep,
    EngineDep,
    http_error,
)
from bookclub_stage.core.errors import ModerationError
from bookclub_stage.models.moderation import EntityKind, EventStatus, ReportStatus, ReportType
from bookclub_stage.models.user import User
from bookclub_stage.schemas.comment import CommentCreate, CommentResponse
from bookclub_stage.schemas.moderation import (
    EventCreate,
    EventResponse,
    EventUpdate,
    EventUpdateResponse,
    PendingEventStats,
    ReportCreate,
    ReportResponse,
    ReportStatsResponse,
    TransitionRequest,
    TransitionResponse,
)
from bookclub_stage.schemas.rsvp import RsvpRequest, RsvpResponse
from bookclub_stage.services.engine import Engine
from bookclub_stage.services.moderation import TransitionOutcome

router = APIRouter(tags=["moderation"])


def _get_entity_or_404(engine: Engine, entity_id: str, kind: EntityKind) -> EventResponse | ReportResponse:
    try:
        entity = engine.moderation.get_entity(entity_id)
    except ModerationError as err:
        raise http_error(err) from err
    if entity.kind is not kind:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{kind.value.capitalize()} not found",
        )
    return entity


def _get_visible_event(engine: Engine, event_id: str, user: User) -> EventResponse:
    event = _get_entity_or_404(engine, event_id, EntityKind.EVENT)
    assert isinstance(event, EventResponse)
    visible = (
        event.status == EventStatus.APPROVED.value
        or user.is_admin
        or event.submitter_id == user.id
    )
    if not visible:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def _to_transition_response(outcome: TransitionOutcome) -> TransitionResponse:
    return TransitionResponse(
        entity_id=outcome.entity.id,
        previous_status=outcome.previous_status,
        status=outcome.status,
        notification_ids=[notification.id for notification in outcome.notifications],
        warnings=[str(outcome.warning)] if outcome.warning else [],
    )


async def _transition(
    engine: Engine,
    entity_id: str,
    kind: EntityKind,
    payload: TransitionRequest,
    actor_id: str,
) -> TransitionResponse:
    _get_entity_or_404(engine, entity_id, kind)
    try:
        outcome = await engine.moderation.transition(
            entity_id, payload.action, actor_id, note=payload.note
        )
    except ModerationError as err:
        raise http_error(err) from err
    return _to_transition_response(outcome)


@router.post("/events", status_code=status.HTTP_201_CREATED, response_model=EventResponse)
async def submit_event(
    payload: EventCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> EventResponse:
    """Submit an event for admin approval."""
    try:
        return engine.moderation.submit_event(current_user.id, payload)
    except ModerationError as err:
        raise http_error(err) from err


@router.get("/events", response_model=list[EventResponse])
async def list_events(
    current_user: CurrentUserDep,
    engine: EngineDep,
    status_filter: EventStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
) -> list[EventResponse]:
    """List events; members only see approved ones."""
    if not current_user.is_admin:
        if status_filter not in (None, EventStatus.APPROVED):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admins can view the moderation queue",
            )
        status_filter = EventStatus.APPROVED
    value = status_filter.value if status_filter else None
    return engine.moderation.list_events(value, limit=limit)


@router.get("/events/stats", response_model=PendingEventStats)
async def pending_event_stats(current_admin: CurrentAdminDep, engine: EngineDep) -> PendingEventStats:
    """Return the size of the approval queue."""
    return engine.moderation.pending_event_stats()


@router.get("/events/{event_id}", response_model=EventResponse)
async def get_event(event_id: str, current_user: CurrentUserDep, engine: EngineDep) -> EventResponse:
    """Return one event; unapproved events are visible to admins and their submitter."""
    return _get_visible_event(engine, event_id, current_user)


@router.put("/events/{event_id}", response_model=EventUpdateResponse)
async def update_event(
    event_id: str,
    payload: EventUpdate,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> EventUpdateResponse:
    """Edit an event's details and notify the members attending it."""
    _get_entity_or_404(engine, event_id, EntityKind.EVENT)
    try:
        return await engine.events.update_event(event_id, current_user.id, payload)
    except ModerationError as err:
        raise http_error(err) from err


@router.post("/events/{event_id}/rsvp", response_model=RsvpResponse)
async def rsvp(
    event_id: str,
    payload: RsvpRequest,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> RsvpResponse:
    """Record whether the current user is attending an event."""
    _get_visible_event(engine, event_id, current_user)
    try:
        return engine.events.set_rsvp(event_id, current_user.id, payload.status)
    except ModerationError as err:
        raise http_error(err) from err


@router.get("/events/{event_id}/rsvps", response_model=list[RsvpResponse])
async def list_rsvps(
    event_id: str,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> list[RsvpResponse]:
    _get_visible_event(engine, event_id, current_user)
    return engine.events.list_rsvps(event_id)


@router.post("/events/{event_id}/transition", response_model=TransitionResponse)
async def transition_event(
    event_id: str,
    payload: TransitionRequest,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> TransitionResponse:
    """Approve or reject a submitted event."""
    return await _transition(engine, event_id, EntityKind.EVENT, payload, current_user.id)


@router.get("/events/{event_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    event_id: str,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> list[CommentResponse]:
    """List the comments on an event."""
    _get_entity_or_404(engine, event_id, EntityKind.EVENT)
    return engine.comments.list_comments(event_id)


@router.post(
    "/events/{event_id}/comments",
    status_code=status.HTTP_201_CREATED,
    response_model=CommentResponse,
)
async def post_comment(
    event_id: str,
    payload: CommentCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> CommentResponse:
    """Comment on an event, notifying mentioned members and the replied-to author."""
    try:
        return await engine.comments.post_comment(event_id, current_user.id, payload)
    except ModerationError as err:
        raise http_error(err) from err
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(err),
        ) from err


@router.post("/reports", status_code=status.HTTP_201_CREATED, response_model=ReportResponse)
async def submit_report(
    payload: ReportCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> ReportResponse:
    """Report a profile, comment or event to the admins."""
    try:
        return await engine.moderation.submit_report(current_user.id, payload)
    except ModerationError as err:
        raise http_error(err) from err


@router.get("/reports", response_model=list[ReportResponse])
async def list_reports(
    current_admin: CurrentAdminDep,
    engine: EngineDep,
    status_filter: ReportStatus | None = Query(None, alias="status"),
    report_type: ReportType | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
) -> list[ReportResponse]:
    """List reports for the moderation screen."""
    value = status_filter.value if status_filter else None
    return engine.moderation.list_reports(
        value,
        limit=limit,
        report_type=report_type.value if report_type else None,
    )


@router.get("/reports/mine", response_model=list[ReportResponse])
async def list_my_reports(
    current_user: CurrentUserDep,
    engine: EngineDep,
    limit: int = Query(50, ge=1, le=100),
) -> list[ReportResponse]:
    """List the reports the current user has filed, newest first."""
    return engine.moderation.list_reports(limit=limit, reporter_id=current_user.id)


@router.get("/reports/stats", response_model=ReportStatsResponse)
async def report_stats(current_admin: CurrentAdminDep, engine: EngineDep) -> ReportStatsResponse:
    """Return report counts per status."""
    return engine.moderation.report_stats()


@router.get("/reports/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: str, current_user: CurrentUserDep, engine: EngineDep
) -> ReportResponse:
    """Return one report to an admin or to the member who filed it."""
    report = _get_entity_or_404(engine, report_id, EntityKind.REPORT)
    assert isinstance(report, ReportResponse)
    if not (current_user.is_admin or report.reporter_id == current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


@router.post("/reports/{report_id}/transition", response_model=TransitionResponse)
async def transition_report(
    report_id: str,
    payload: TransitionRequest,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> TransitionResponse:
    """Investigate, resolve or dismiss a report."""
    return await _transition(engine, report_id, EntityKind.REPORT, payload, current_user.id)
