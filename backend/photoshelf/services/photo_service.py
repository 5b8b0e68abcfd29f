from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from photoshelf.core.context import Principal
from photoshelf.core.errors import Conflict, NotFound, ValidationError
from photoshelf.models.photo import Photo
from photoshelf.services.ownership import delete_with_rules
from photoshelf.services.storage import BlobStore, build_photo_key, ensure_key_owned, is_avatar_key
from photoshelf.services.uploads import validate_image_upload

logger = logging.getLogger(__name__)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


async def get_owned_photo(db: AsyncSession, owner_id: UUID, photo_id: UUID) -> Photo:
    result = await db.execute(select(Photo).where(Photo.id == photo_id, Photo.user_id == owner_id))
    photo = result.scalar_one_or_none()
    if photo is None:
        raise NotFound("Photo not found")
    return photo


async def _key_registered(db: AsyncSession, storage_key: str) -> bool:
    result = await db.execute(select(Photo.id).where(Photo.storage_key == storage_key))
    return result.scalar_one_or_none() is not None


async def create_photo(
    db: AsyncSession,
    caller: Principal,
    owner_id: UUID,
    storage_key: str,
    store: BlobStore,
    title: str | None = None,
    description: str | None = None,
) -> Photo:
    """Register a blob that is already in the store as one of ``owner_id``'s photos.

    Each blob backs at most one photo, and the profile avatar never does:
    deleting a photo deletes its blob.
    """
    caller.require_owner(owner_id)
    key = ensure_key_owned(owner_id, storage_key)
    if is_avatar_key(key):
        raise ValidationError("The profile avatar cannot be registered as a photo", details={"storage_key": key})
    if await _key_registered(db, key):
        raise Conflict("A photo is already registered for this storage key", details={"storage_key": key})
    if not store.exists(key):
        raise ValidationError("No uploaded file exists at this storage key", details={"storage_key": key})

    photo = Photo(
        user_id=owner_id,
        storage_key=key,
        url=store.public_url(key),
        title=_clean(title),
        description=_clean(description),
    )
    db.add(photo)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict("A photo is already registered for this storage key", details={"storage_key": key}) from exc
    await db.refresh(photo)
    logger.info("photo event=created user_id=%s photo_id=%s", owner_id, photo.id)
    return photo


async def upload_photo(
    db: AsyncSession,
    caller: Principal,
    store: BlobStore,
    filename: str,
    file_bytes: bytes,
    content_type: str | None,
    title: str | None = None,
    description: str | None = None,
) -> Photo:
    # Blob write and row insert are separate steps; a failure in between orphans the blob.
    content_type = validate_image_upload(filename, file_bytes, content_type)
    key = build_photo_key(caller.user_id, filename)
    store.put(caller, key, file_bytes, content_type)
    return await create_photo(db, caller, caller.user_id, key, store, title=title, description=description)


async def get_photo(db: AsyncSession, caller: Principal, owner_id: UUID, photo_id: UUID) -> Photo:
    caller.require_owner(owner_id)
    return await get_owned_photo(db, owner_id, photo_id)


async def list_photos(db: AsyncSession, caller: Principal, owner_id: UUID) -> list[Photo]:
    caller.require_owner(owner_id)
    result = await db.execute(
        select(Photo).where(Photo.user_id == owner_id).order_by(desc(Photo.created_at))
    )
    return list(result.scalars().all())


async def update_photo(
    db: AsyncSession,
    caller: Principal,
    owner_id: UUID,
    photo_id: UUID,
    title: str | None = None,
    description: str | None = None,
) -> Photo:
    """``None`` leaves a field unchanged; an empty string clears it."""
    caller.require_owner(owner_id)
    photo = await get_owned_photo(db, owner_id, photo_id)
    if title is not None:
        photo.title = _clean(title)
    if description is not None:
        photo.description = _clean(description)
    await db.commit()
    await db.refresh(photo)
    return photo


async def delete_photo(db: AsyncSession, caller: Principal, owner_id: UUID, photo_id: UUID) -> Photo:
    """Delete the row, drop its memberships and clear covers pointing at it.

    Returns the deleted photo so the caller can remove the blob.
    """
    caller.require_owner(owner_id)
    photo = await get_owned_photo(db, owner_id, photo_id)
    await delete_with_rules(db, "photo", [photo.id])
    await db.commit()
    logger.info("photo event=deleted user_id=%s photo_id=%s", owner_id, photo_id)
    return photo
