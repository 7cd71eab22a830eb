"""SQLAlchemy models for community members as seen by the engine."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bookclub_stage.db.session import Base
from bookclub_stage.db.time import utcnow

ROLE_MEMBER = "member"
ROLE_ADMIN = "admin"


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


class User(Base):
    """Directory entry: identity, display name and role.

    Profiles, avatars and credentials live with the identity provider; the
    engine only needs enough to resolve mentions and check privileges.
    """

    __tablename__ = "app_user"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_MEMBER)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    @property
    def is_admin(self) -> bool:
        """Return True for members holding the admin role."""
        return self.role == ROLE_ADMIN
