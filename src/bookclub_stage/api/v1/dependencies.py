"""Shared API dependencies for authentication and engine access."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from bookclub_stage.core.errors import (
    DuplicateReportError,
    ForbiddenError,
    InvalidTransitionError,
    ModerationError,
    NotFoundError,
)
from bookclub_stage.core.security import decode_subject
from bookclub_stage.db.session import get_db
from bookclub_stage.models import User
from bookclub_stage.services.engine import Engine, get_engine

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

# Type alias for engine dependency
EngineDep = Annotated[Engine, Depends(get_engine)]


def resolve_user(token: str, db: Session) -> User:
    """Return the user a bearer token belongs to.

    Args:
        token: Encoded JWT
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    subject = decode_subject(token)
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    user = db.get(User, subject)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token."""
    return resolve_user(credentials.credentials, db)


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_current_admin(current_user: CurrentUserDep) -> User:
    """Require the current user to hold the admin role."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


# Type alias for admin-only dependency
CurrentAdminDep = Annotated[User, Depends(get_current_admin)]


def http_error(err: ModerationError) -> HTTPException:
    """Translate a domain error into the HTTP response callers should see."""
    if isinstance(err, NotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{err.kind.capitalize()} not found",
        )
    if isinstance(err, ForbiddenError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to perform this action",
        )
    if isinstance(err, InvalidTransitionError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": f"Cannot {err.requested} from status {err.current}",
                "current": err.current,
                "requested": err.requested,
            },
        )
    if isinstance(err, DuplicateReportError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already reported this content",
        )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Notification delivery failed; please retry",
    )
