from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.errors import NotFoundError, ValidationError
from app.core.security import hash_password, verify_password
from app.models.user import User
from app.schemas.auth import ChangePasswordIn, LoginIn, UserOut, VerifiedUserOut
from app.schemas.common import envelope
from app.services.auth import Actor, authenticate, get_actor, load_user

router = APIRouter(prefix="/auth")

MIN_PASSWORD_LENGTH = 6


def _user_out(user: User, *, profile: bool = False) -> dict:
    out = UserOut(
        id=user.id,
        email=user.email,
        role=user.role,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        avatar=user.avatar,
        last_login=user.last_login,
    )
    if profile:
        out.phone = user.phone
        out.is_active = user.is_active
        out.created_at = user.created_at
        return out.model_dump(mode="json", by_alias=True)
    return out.model_dump(mode="json", by_alias=True, exclude={"phone", "is_active", "created_at"})


async def _current_user(db: AsyncSession, actor: Actor) -> User:
    user = await load_user(db, actor.user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


@router.post("/login")
async def login(payload: LoginIn, db: AsyncSession = Depends(get_db)) -> dict:
    result = await authenticate(db, payload.email, payload.password)
    return envelope({"token": result.token, "user": _user_out(result.user)}, "Login successful")


@router.get("/me")
async def me(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> dict:
    user = await _current_user(db, actor)
    return envelope({"user": _user_out(user, profile=True)})


@router.post("/logout")
async def logout(actor: Actor = Depends(get_actor)) -> dict:
    # Tokens are stateless; the client drops its copy
    return envelope(message="Logout successful. Please remove the token from client storage.")


@router.get("/verify")
async def verify(actor: Actor = Depends(get_actor)) -> dict:
    user = VerifiedUserOut(id=actor.user_id, email=actor.email, role=actor.role, full_name=actor.full_name)
    return envelope({"user": user.model_dump(by_alias=True)}, "Token is valid")


@router.put("/change-password")
async def change_password(
    payload: ChangePasswordIn,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if not payload.current_password or not payload.new_password:
        raise ValidationError("Current password and new password are required")
    if len(payload.new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")

    user = await _current_user(db, actor)
    if not verify_password(payload.current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")

    user.password_hash = hash_password(payload.new_password)
    await db.commit()
    return envelope(message="Password changed successfully")
