"""Authorization collaborator consumed by the moderation state machine."""

from __future__ import annotations

from collections.abc import Callable

from bookclub_stage.models.moderation import ModerationAction
from bookclub_stage.schemas.moderation import EventResponse, ReportResponse
from bookclub_stage.services.directory import UserDirectory

# (actor_id, action, entity) -> may the actor perform the action?
Authorizer = Callable[[str | None, ModerationAction, EventResponse | ReportResponse], bool]


class RoleAuthorizer:
    """Grants every moderation action to admins and nothing to anyone else."""

    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory

    def __call__(
        self,
        actor_id: str | None,
        action: ModerationAction,
        entity: EventResponse | ReportResponse,
    ) -> bool:
        if actor_id is None:
            return False
        return self._directory.is_admin(actor_id)
