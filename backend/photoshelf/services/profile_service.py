from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from photoshelf.core.context import Principal
from photoshelf.core.errors import NotFound, StorageError, ValidationError
from photoshelf.models.profile import Profile
from photoshelf.models.user import User
from photoshelf.services.storage import BlobStore, build_avatar_key, is_avatar_key, key_owner
from photoshelf.services.uploads import validate_image_upload

logger = logging.getLogger(__name__)


def _clean(value: str) -> str | None:
    value = value.strip()
    return value or None


async def _find_profile(db: AsyncSession, user_id: UUID) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    return result.scalar_one_or_none()


async def provision_profile(db: AsyncSession, user: User) -> Profile:
    """Return the user's profile, creating it on first sight. Does not commit.

    A concurrent insert for the same user loses on the unique user_id
    constraint; the loser rolls back its savepoint and reads the winner's row.
    """
    user_id = user.id
    profile = await _find_profile(db, user_id)
    if profile is not None:
        return profile

    try:
        async with db.begin_nested():
            profile = Profile(user_id=user_id, display_name=user.email)
            db.add(profile)
    except IntegrityError:
        logger.info("profile event=provision_conflict user_id=%s", user_id)
        profile = await _find_profile(db, user_id)
        if profile is None:
            raise
        return profile

    logger.info("profile event=provisioned user_id=%s", user_id)
    return profile


async def get_profile(db: AsyncSession, caller: Principal, user_id: UUID) -> Profile:
    # profiles are readable by every signed-in user
    profile = await _find_profile(db, user_id)
    if profile is None:
        raise NotFound("Profile not found")
    return profile


async def update_profile(
    db: AsyncSession,
    caller: Principal,
    owner_id: UUID,
    display_name: str | None = None,
    avatar_url: str | None = None,
) -> Profile:
    caller.require_owner(owner_id)
    profile = await get_profile(db, caller, owner_id)

    if display_name is not None:
        profile.display_name = _clean(display_name)
    if avatar_url is not None:
        profile.avatar_url = _clean(avatar_url)

    await db.commit()
    await db.refresh(profile)
    return profile


async def upload_avatar(
    db: AsyncSession,
    caller: Principal,
    store: BlobStore,
    filename: str,
    file_bytes: bytes,
    content_type: str | None,
) -> Profile:
    """Store the avatar at ``{caller}/avatar{ext}`` and drop the previous one if its extension differed."""
    content_type = validate_image_upload(filename, file_bytes, content_type)
    profile = await get_profile(db, caller, caller.user_id)

    key = build_avatar_key(caller.user_id, filename)
    stale_key = _stale_avatar_key(store, caller, profile.avatar_url, key)
    profile.avatar_url = store.put(caller, key, file_bytes, content_type)

    await db.commit()
    await db.refresh(profile)

    if stale_key is not None:
        try:
            store.delete(caller, stale_key)
        except StorageError as exc:
            logger.warning(
                "profile event=avatar_cleanup_failed user_id=%s key=%s error=%s",
                caller.user_id,
                stale_key,
                exc.message,
            )
    return profile


def _stale_avatar_key(store: BlobStore, caller: Principal, previous_url: str | None, current_key: str) -> str | None:
    previous_key = store.key_for_url(previous_url)
    if previous_key is None or previous_key == current_key:
        return None
    # a hand-set avatar_url may point anywhere; only our own avatar objects are cleaned up
    try:
        if key_owner(previous_key) != str(caller.user_id) or not is_avatar_key(previous_key):
            return None
    except ValidationError:
        return None
    return previous_key
