import logging
import re

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timedelta, timezone
from photoshelf.models.user import User, RefreshToken
from photoshelf.core.context import Principal
from photoshelf.core.errors import Conflict, Unauthorized, ValidationError
from photoshelf.core.security import create_refresh_token, hash_password, hash_token, verify_password
from photoshelf.core.config import settings
from photoshelf.services.ownership import delete_with_rules
from photoshelf.services.profile_service import provision_profile

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6

def normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email address is required")
    return email

async def register_user(db: AsyncSession, email: str, password: str) -> User:
    email = normalize_email(email)
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise Conflict("An account with this email already exists")

    user = User(email=email, password_hash=hash_password(password))
    db.add(user)
    try:
        await db.flush()
        await provision_profile(db, user)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict("An account with this email already exists") from exc
    await db.refresh(user)
    logger.info("auth event=signup user_id=%s", user.id)
    return user

async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    result = await db.execute(select(User).where(User.email == (email or "").strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password or "", user.password_hash):
        raise Unauthorized("Invalid email or password")

    await provision_profile(db, user)
    await db.commit()
    return user

async def create_refresh_token_for_user(db: AsyncSession, user_id) -> str:
    raw_token, token_hash = create_refresh_token()
    expires_at = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    db_token = RefreshToken(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
    db.add(db_token)
    await db.commit()
    return raw_token

async def get_user_for_refresh_token(db: AsyncSession, raw_token: str) -> User:
    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == hash_token(raw_token),
            RefreshToken.revoked.is_(False),
        )
    )
    db_token = result.scalar_one_or_none()
    if db_token is None or _as_utc(db_token.expires_at) <= datetime.now(timezone.utc):
        raise Unauthorized("Invalid or expired refresh token")
    user = await get_current_user(db, db_token.user_id)
    if user is None:
        raise Unauthorized("Invalid or expired refresh token")
    return user

async def revoke_refresh_token(db: AsyncSession, raw_token: str) -> None:
    result = await db.execute(select(RefreshToken).where(RefreshToken.token_hash == hash_token(raw_token)))
    db_token = result.scalar_one_or_none()
    if db_token:
        db_token.revoked = True
        await db.commit()

async def get_current_user(db: AsyncSession, user_id) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()

async def delete_account(db: AsyncSession, caller: Principal) -> None:
    await delete_with_rules(db, "user", [caller.user_id])
    await db.commit()
    logger.info("auth event=account_deleted user_id=%s", caller.user_id)

def principal_for(user: User) -> Principal:
    return Principal(user_id=user.id, email=user.email)

def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
