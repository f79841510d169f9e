"""FastAPI dependencies for injection into route handlers."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from playhub.core.auth import decode_token
from playhub.core.config import settings
from playhub.core.database import async_session_factory, get_db
from playhub.models.member import User, UserRole
from playhub.services.context import Actor, BookingContext

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Resolve the JWT bearer token into the acting user's id and role."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        payload = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
        user_id = int(payload["sub"])
    except (JWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    result = await db.execute(select(User.role).where(User.id == user_id, User.is_active.is_(True)))
    role = result.scalar_one_or_none()
    if role is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return Actor(id=user_id, role=UserRole(role))


# ---------------------------------------------------------------------------
# Reservation core
# ---------------------------------------------------------------------------

_booking_context: BookingContext | None = None


def get_booking_context() -> BookingContext:
    """The process-wide BookingContext. Overridden in tests."""
    global _booking_context
    if _booking_context is None:
        _booking_context = BookingContext.from_settings(settings, async_session_factory)
    return _booking_context
