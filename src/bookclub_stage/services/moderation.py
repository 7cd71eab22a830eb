"""Moderation services: submissions and the approval state machine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from bookclub_stage.core.errors import (
    DuplicateReportError,
    EmissionFailure,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
)
from bookclub_stage.core.settings import settings
from bookclub_stage.db.time import utcnow
from bookclub_stage.models.moderation import (
    TERMINAL_STATUSES,
    EntityKind,
    EventStatus,
    ModerationAction,
    Report,
    ReportStatus,
    SubmittedEvent,
)
from bookclub_stage.schemas.moderation import (
    EventCreate,
    EventResponse,
    PendingEventStats,
    ReportCreate,
    ReportResponse,
    ReportStatsResponse,
)
from bookclub_stage.schemas.notification import NotificationResponse
from bookclub_stage.services.authorization import Authorizer
from bookclub_stage.services.directory import UserDirectory
from bookclub_stage.services.locks import task_locks
from bookclub_stage.services.notification_emitter import (
    AdminBroadcast,
    EntityStatusChanged,
    NotificationEmitter,
)
from bookclub_stage.services.subscriptions import (
    ChangeNotice,
    LiveQueryKind,
    SubscriptionBroker,
    SubscriptionFilter,
)

# Configure logger for this module
logger = logging.getLogger(__name__)

ModeratedRow = SubmittedEvent | Report
ModeratedSnapshot = EventResponse | ReportResponse

# Legal edges per entity kind: (current status, action) -> next status.
TRANSITIONS: dict[EntityKind, dict[tuple[str, ModerationAction], str]] = {
    EntityKind.EVENT: {
        (EventStatus.PENDING.value, ModerationAction.APPROVE): EventStatus.APPROVED.value,
        (EventStatus.PENDING.value, ModerationAction.REJECT): EventStatus.REJECTED.value,
    },
    EntityKind.REPORT: {
        (ReportStatus.PENDING.value, ModerationAction.INVESTIGATE): ReportStatus.INVESTIGATING.value,
        (ReportStatus.PENDING.value, ModerationAction.RESOLVE): ReportStatus.RESOLVED.value,
        (ReportStatus.PENDING.value, ModerationAction.DISMISS): ReportStatus.DISMISSED.value,
        (ReportStatus.INVESTIGATING.value, ModerationAction.RESOLVE): ReportStatus.RESOLVED.value,
        (ReportStatus.INVESTIGATING.value, ModerationAction.DISMISS): ReportStatus.DISMISSED.value,
    },
}

_LIVE_KIND = {EntityKind.EVENT: LiveQueryKind.EVENTS, EntityKind.REPORT: LiveQueryKind.REPORTS}


def next_status(kind: EntityKind, current: str, action: ModerationAction) -> str | None:
    """Return the status ``action`` leads to from ``current``, or None if illegal."""
    if current in TERMINAL_STATUSES:
        return None
    return TRANSITIONS[kind].get((current, action))


def to_snapshot(row: ModeratedRow) -> ModeratedSnapshot:
    """Convert a moderated ORM row into its immutable schema."""
    if isinstance(row, SubmittedEvent):
        return EventResponse.model_validate(row)
    return ReportResponse.model_validate(row)


@dataclass(frozen=True)
class TransitionOutcome:
    """Committed transition plus what its notification side effect produced."""

    entity: ModeratedSnapshot
    previous_status: str
    notifications: list[NotificationResponse] = field(default_factory=list)
    warning: EmissionFailure | None = None

    @property
    def status(self) -> str:
        """The entity's new status."""
        return self.entity.status


class ModerationService:
    """Owner of moderated entities and their lifecycle.

    Transitions on one entity are serialized; transitions on different
    entities run independently. Entity rows are only ever mutated here.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        emitter: NotificationEmitter,
        authorizer: Authorizer,
        directory: UserDirectory,
        broker: SubscriptionBroker | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._emitter = emitter
        self._authorizer = authorizer
        self._directory = directory
        self._broker = broker
        self._entity_locks = task_locks()

    def _publish(
        self,
        kind: EntityKind,
        statuses: set[str],
        entity_id: str,
        report_type: str | None = None,
    ) -> None:
        if self._broker is not None:
            self._broker.publish(
                ChangeNotice(
                    kind=_LIVE_KIND[kind],
                    statuses=frozenset(statuses),
                    report_type=report_type,
                    entity_id=entity_id,
                )
            )

    @staticmethod
    def _find(db: Session, entity_id: str) -> ModeratedRow | None:
        return db.get(SubmittedEvent, entity_id) or db.get(Report, entity_id)

    # -- queries -------------------------------------------------------------

    def get_entity(self, entity_id: str) -> ModeratedSnapshot:
        """Return a submitted event or report by id.

        Raises:
            NotFoundError: If neither exists.
        """
        with self._session_factory() as db:
            row = self._find(db, entity_id)
            if row is None:
                raise NotFoundError("entity", entity_id)
            return to_snapshot(row)

    def list_events(self, status: str | None = None, limit: int | None = None) -> list[EventResponse]:
        """Return submitted events, oldest first, optionally narrowed by status."""
        with self._session_factory() as db:
            query = db.query(SubmittedEvent)
            if status is not None:
                query = query.filter(SubmittedEvent.status == status)
            query = query.order_by(SubmittedEvent.created_at, SubmittedEvent.id)
            if limit:
                query = query.limit(limit)
            return [EventResponse.model_validate(row) for row in query.all()]

    def list_reports(
        self,
        status: str | None = None,
        limit: int | None = None,
        *,
        reporter_id: str | None = None,
        report_type: str | None = None,
    ) -> list[ReportResponse]:
        """Return reports, newest first.

        Args:
            status: Only reports in this status.
            limit: Maximum number of reports to return.
            reporter_id: Only reports filed by this member.
            report_type: Only reports about this kind of content.
        """
        with self._session_factory() as db:
            query = db.query(Report)
            if status is not None:
                query = query.filter(Report.status == status)
            if reporter_id is not None:
                query = query.filter(Report.reporter_id == reporter_id)
            if report_type is not None:
                query = query.filter(Report.report_type == report_type)
            query = query.order_by(Report.created_at.desc(), Report.id)
            if limit:
                query = query.limit(limit)
            return [ReportResponse.model_validate(row) for row in query.all()]

    def load_events(self, subscription_filter: SubscriptionFilter) -> list[EventResponse]:
        """Snapshot loader for moderation queue subscriptions."""
        return self.list_events(subscription_filter.status)

    def load_reports(self, subscription_filter: SubscriptionFilter) -> list[ReportResponse]:
        """Snapshot loader for report list subscriptions."""
        return self.list_reports(
            subscription_filter.status, report_type=subscription_filter.report_type
        )

    def report_stats(self) -> ReportStatsResponse:
        """Return report counts per status plus those filed in the recent window."""
        since = utcnow() - timedelta(days=settings.report_stats_window_days)
        with self._session_factory() as db:
            per_status = dict(
                db.query(Report.status, func.count(Report.id)).group_by(Report.status).all()
            )
            recent = db.query(func.count(Report.id)).filter(Report.created_at >= since).scalar()
        return ReportStatsResponse(
            total_reports=sum(per_status.values()),
            pending_reports=per_status.get(ReportStatus.PENDING.value, 0),
            investigating_reports=per_status.get(ReportStatus.INVESTIGATING.value, 0),
            resolved_reports=per_status.get(ReportStatus.RESOLVED.value, 0),
            dismissed_reports=per_status.get(ReportStatus.DISMISSED.value, 0),
            reports_this_week=recent or 0,
        )

    def pending_event_stats(self) -> PendingEventStats:
        """Return the approval queue size and how much of it arrived recently."""
        since = utcnow() - timedelta(days=settings.report_stats_window_days)
        with self._session_factory() as db:
            pending = db.query(SubmittedEvent).filter(
                SubmittedEvent.status == EventStatus.PENDING.value
            )
            total = pending.count()
            recent = pending.filter(SubmittedEvent.created_at >= since).count()
        return PendingEventStats(total_pending=total, new_this_week=recent)

    def has_reported(self, reporter_id: str, content_id: str, report_type: str) -> bool:
        """Return True if ``reporter_id`` already reported this content."""
        with self._session_factory() as db:
            existing = (
                db.query(Report.id)
                .filter(
                    Report.reporter_id == reporter_id,
                    Report.content_id == content_id,
                    Report.report_type == report_type,
                )
                .first()
            )
        return existing is not None

    # -- submissions ---------------------------------------------------------

    def submit_event(self, submitter_id: str, data: EventCreate) -> EventResponse:
        """Create a submitted event awaiting approval.

        Admin submissions are approved on creation when
        ``AUTO_APPROVE_ADMIN_EVENTS`` is enabled.
        """
        if self._directory.display_name(submitter_id) is None:
            raise NotFoundError("user", submitter_id)
        auto_approve = settings.auto_approve_admin_events and self._directory.is_admin(
            submitter_id
        )
        status = EventStatus.APPROVED if auto_approve else EventStatus.PENDING
        now = utcnow()
        with self._session_factory() as db:
            row = SubmittedEvent(
                submitter_id=submitter_id,
                title=data.title,
                description=data.description,
                status=status.value,
                decided_by=submitter_id if auto_approve else None,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            db.commit()
            event = EventResponse.model_validate(row)
        logger.info("Event %s submitted by %s (%s)", event.id, submitter_id, event.status)
        self._publish(EntityKind.EVENT, {event.status}, event.id)
        return event

    async def submit_report(self, reporter_id: str, data: ReportCreate) -> ReportResponse:
        """File a report and let every admin know about it.

        Raises:
            NotFoundError: If the reporter is unknown.
            DuplicateReportError: If the reporter already reported this content.
        """
        reporter_name = self._directory.display_name(reporter_id)
        if reporter_name is None:
            raise NotFoundError("user", reporter_id)
        if self.has_reported(reporter_id, data.content_id, data.report_type.value):
            raise DuplicateReportError(
                f"{reporter_id!r} already reported {data.report_type.value} {data.content_id!r}"
            )
        now = utcnow()
        with self._session_factory() as db:
            row = Report(
                reporter_id=reporter_id,
                report_type=data.report_type.value,
                reason=data.reason.value,
                description=data.description,
                content_id=data.content_id,
                content_owner_id=data.content_owner_id,
                content_preview=data.content_preview,
                status=ReportStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError as exc:
                # A concurrent identical report won the unique constraint.
                db.rollback()
                raise DuplicateReportError(
                    f"{reporter_id!r} already reported {data.report_type.value} {data.content_id!r}"
                ) from exc
            report = ReportResponse.model_validate(row)
        logger.info("Report %s filed by %s", report.id, reporter_id)
        self._publish(EntityKind.REPORT, {report.status}, report.id, report.report_type)

        admins = [admin_id for admin_id in self._directory.admin_ids() if admin_id != reporter_id]
        if admins:
            preview = f': "{report.content_preview}"' if report.content_preview else ""
            broadcast = AdminBroadcast(
                recipients=tuple(admins),
                title="New content report",
                message=f"{reporter_name} reported a {report.report_type}{preview}",
                actor_id=reporter_id,
                source_entity_id=report.id,
            )
            try:
                await self._emitter.emit(broadcast)
            except EmissionFailure as failure:
                logger.warning("Admins were not notified of report %s: %s", report.id, failure)
        return report

    # -- state machine -------------------------------------------------------

    async def transition(
        self,
        entity_id: str,
        action: ModerationAction | str,
        actor_id: str | None,
        note: str | None = None,
    ) -> TransitionOutcome:
        """Apply ``action`` to an entity and emit the resulting notifications.

        Validation runs in order: existence, authorization, legality, with an
        unknown action rejected right after the existence check. A failed
        validation leaves the entity untouched. Once the new status is
        committed, a failed emission is reported on ``outcome.warning`` and the
        status change stands.

        Raises:
            NotFoundError: If the entity does not exist.
            ForbiddenError: If the authorizer rejects the actor.
            InvalidTransitionError: If the action is unknown or illegal from the
                current status.
        """
        async with self._entity_locks(entity_id):
            with self._session_factory() as db:
                row = self._find(db, entity_id)
                if row is None:
                    raise NotFoundError("entity", entity_id)
                try:
                    action = ModerationAction(action)
                except ValueError as exc:
                    raise InvalidTransitionError(entity_id, row.status, str(action)) from exc
                if not self._authorizer(actor_id, action, to_snapshot(row)):
                    raise ForbiddenError(actor_id, action.value, entity_id)
                previous = row.status
                target = next_status(row.kind, previous, action)
                if target is None:
                    raise InvalidTransitionError(entity_id, previous, action.value)

                now = utcnow()
                row.status = target
                row.updated_at = now
                if note is not None:
                    row.resolution_note = note
                if isinstance(row, SubmittedEvent):
                    row.decided_by = actor_id
                else:
                    row.assigned_admin_id = actor_id
                    if target in TERMINAL_STATUSES:
                        row.resolved_at = now
                db.commit()
                updated = to_snapshot(row)

            logger.info(
                "%s %s: %s -> %s by %s",
                updated.kind.value, entity_id, previous, target, actor_id,
            )
            report_type = updated.report_type if isinstance(updated, ReportResponse) else None
            self._publish(updated.kind, {previous, target}, entity_id, report_type)

            change = EntityStatusChanged(
                entity=updated,
                old_status=previous,
                new_status=target,
                actor_id=actor_id,
            )
            try:
                # The emission attempt outlives a cancelled caller.
                notifications = await asyncio.shield(self._emitter.emit(change))
            except EmissionFailure as failure:
                logger.warning("Transition of %s committed but emission failed: %s", entity_id, failure)
                return TransitionOutcome(updated, previous, failure.delivered, failure)
        return TransitionOutcome(updated, previous, notifications)
