"""User directory collaborators: id to display-name lookups and roles."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from bookclub_stage.models.user import ROLE_ADMIN, User
from bookclub_stage.schemas.mention import DirectoryEntry


class UserDirectory(Protocol):
    """Lookups consumed by mention resolution and notification rendering."""

    def entries(self) -> Iterable[DirectoryEntry]:
        """Return every resolvable member."""
        ...

    def display_name(self, user_id: str) -> str | None:
        """Return the display name for ``user_id`` or None when unknown."""
        ...

    def is_admin(self, user_id: str) -> bool:
        """Return True when ``user_id`` holds elevated privileges."""
        ...

    def admin_ids(self) -> list[str]:
        """Return identifiers of every admin."""
        ...


class SqlUserDirectory:
    """Directory backed by the ``app_user`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def entries(self) -> list[DirectoryEntry]:
        with self._session_factory() as db:
            rows = db.query(User.id, User.display_name).order_by(User.id).all()
        return [DirectoryEntry(user_id=row.id, display_name=row.display_name) for row in rows]

    def display_name(self, user_id: str) -> str | None:
        with self._session_factory() as db:
            user = db.get(User, user_id)
            return user.display_name if user else None

    def is_admin(self, user_id: str) -> bool:
        with self._session_factory() as db:
            user = db.get(User, user_id)
            return bool(user and user.is_admin)

    def admin_ids(self) -> list[str]:
        with self._session_factory() as db:
            rows = db.query(User.id).filter(User.role == ROLE_ADMIN).order_by(User.id).all()
        return [row.id for row in rows]


class InMemoryUserDirectory:
    """Directory over a fixed mapping, for tools and tests that have no database."""

    def __init__(
        self,
        names: Mapping[str, str],
        admins: Iterable[str] = (),
    ) -> None:
        self._names = dict(names)
        self._admins = set(admins)

    def entries(self) -> list[DirectoryEntry]:
        return [
            DirectoryEntry(user_id=user_id, display_name=name)
            for user_id, name in sorted(self._names.items())
        ]

    def display_name(self, user_id: str) -> str | None:
        return self._names.get(user_id)

    def is_admin(self, user_id: str) -> bool:
        return user_id in self._admins

    def admin_ids(self) -> list[str]:
        return sorted(self._admins)
