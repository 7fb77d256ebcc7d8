from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import DateTime, and_, case, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.errors import AccountLockedError, AuthError, ForbiddenError
from app.core.security import create_access_token, decode_access_token, verify_password
from app.models.base import utcnow
from app.models.user import User

log = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

INVALID_CREDENTIALS = "Invalid email or password"
DEACTIVATED = "Account is deactivated. Please contact support."


@dataclass(frozen=True)
class Actor:
    user_id: str
    email: str
    role: str  # "admin" | "user"
    full_name: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: User


async def load_user(db: AsyncSession, user_id: str) -> User | None:
    # populate_existing: the counters may have been changed by a bulk UPDATE
    stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one_or_none()


async def _actor_from_token(db: AsyncSession, token: str) -> Actor:
    claims = decode_access_token(token)
    user = await load_user(db, claims.user_id)
    if not user:
        raise AuthError("User not found")
    if not user.is_active:
        raise AuthError(DEACTIVATED)
    return Actor(user_id=user.id, email=user.email, role=user.role, full_name=user.full_name)


async def get_actor(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    if not credentials or not credentials.credentials:
        raise AuthError("Access denied. No token provided.")
    return await _actor_from_token(db, credentials.credentials)


async def get_optional_actor(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor | None:
    """Anonymous (None) for a missing or unusable token; never an error."""
    if not credentials or not credentials.credentials:
        return None
    try:
        return await _actor_from_token(db, credentials.credentials)
    except AuthError:
        return None


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise ForbiddenError("Access denied. Admin privileges required.")
    return actor


async def register_failed_login(db: AsyncSession, user_id: str) -> tuple[int, bool]:
    """
    Count one failed password check with a single UPDATE, so concurrent
    failures can't lose increments. Returns (attempts, locked).
    """
    now = utcnow()
    lock_expired = and_(User.lock_until.is_not(None), User.lock_until <= now)
    attempts_after = case((lock_expired, 1), else_=User.login_attempts + 1)
    lock_deadline = now + timedelta(minutes=settings.lock_time_minutes)

    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(
            login_attempts=attempts_after,
            lock_until=case(
                (attempts_after >= settings.max_login_attempts, literal(lock_deadline, DateTime(timezone=True))),
                (lock_expired, None),
                else_=User.lock_until,
            ),
        )
        .returning(User.login_attempts, User.lock_until)
        .execution_options(synchronize_session=False)
    )
    attempts, lock_until = (await db.execute(stmt)).one()
    await db.commit()

    locked = lock_until is not None and attempts >= settings.max_login_attempts
    if locked:
        log.warning("account locked after %d failed logins: user_id=%s", attempts, user_id)
    return attempts, locked


async def authenticate(db: AsyncSession, email: str, password: str) -> LoginResult:
    stmt = (
        select(User)
        .where(User.email == User.normalize_email(email))
        .execution_options(populate_existing=True)
    )
    user = (await db.execute(stmt)).scalar_one_or_none()
    if not user:
        raise AuthError(INVALID_CREDENTIALS)

    # Locked accounts are rejected before the password is even checked
    if user.is_locked:
        raise AccountLockedError()

    if not user.is_active:
        raise AuthError(DEACTIVATED)

    if not verify_password(password, user.password_hash):
        await register_failed_login(db, user.id)
        raise AuthError(INVALID_CREDENTIALS)

    user.login_attempts = 0
    user.lock_until = None
    user.last_login = utcnow()
    await db.commit()

    log.info("login ok: user_id=%s role=%s", user.id, user.role)
    return LoginResult(token=create_access_token(user.id), user=user)
