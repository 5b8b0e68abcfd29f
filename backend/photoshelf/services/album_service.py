from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, desc, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from photoshelf.core.context import Principal
from photoshelf.core.database import utcnow
from photoshelf.core.errors import Conflict, Forbidden, NotFound, ValidationError
from photoshelf.models.album import ALBUM_NAME_MAX_LENGTH, Album, AlbumPhoto
from photoshelf.models.photo import Photo
from photoshelf.services.membership import MEMBERSHIP_ORDER, ordered_unique, pick_cover
from photoshelf.services.ownership import delete_with_rules

logger = logging.getLogger(__name__)


@dataclass
class AlbumSummary:
    album: Album
    photo_count: int
    cover: Photo | None


def _validate_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Album name is required")
    if len(name) > ALBUM_NAME_MAX_LENGTH:
        raise ValidationError(f"Album name must be {ALBUM_NAME_MAX_LENGTH} characters or fewer")
    return name


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


async def _get_owned_album(db: AsyncSession, owner_id: UUID, album_id: UUID) -> Album:
    # an album owned by someone else looks exactly like a missing one
    result = await db.execute(select(Album).where(Album.id == album_id, Album.user_id == owner_id))
    album = result.scalar_one_or_none()
    if album is None:
        raise NotFound("Album not found")
    return album


async def _member_photos(db: AsyncSession, album_ids: list[UUID]) -> dict[UUID, list[Photo]]:
    members: dict[UUID, list[Photo]] = {album_id: [] for album_id in album_ids}
    if not album_ids:
        return members
    result = await db.execute(
        select(AlbumPhoto.album_id, Photo)
        .join(Photo, Photo.id == AlbumPhoto.photo_id)
        .where(AlbumPhoto.album_id.in_(album_ids))
        .order_by(AlbumPhoto.album_id, *MEMBERSHIP_ORDER)
    )
    for album_id, photo in result.all():
        members[album_id].append(photo)
    return members


async def _summarize(db: AsyncSession, albums: list[Album]) -> list[AlbumSummary]:
    members = await _member_photos(db, [album.id for album in albums])
    return [
        AlbumSummary(
            album=album,
            photo_count=len(members[album.id]),
            cover=pick_cover(album.cover_photo_id, members[album.id]),
        )
        for album in albums
    ]


async def _owned_photo_ids(db: AsyncSession, owner_id: UUID, photo_ids: list[UUID]) -> set[UUID]:
    result = await db.execute(select(Photo.id).where(Photo.id.in_(photo_ids), Photo.user_id == owner_id))
    return set(result.scalars().all())


async def _existing_member_ids(db: AsyncSession, album_id: UUID, photo_ids: list[UUID]) -> set[UUID]:
    result = await db.execute(
        select(AlbumPhoto.photo_id).where(AlbumPhoto.album_id == album_id, AlbumPhoto.photo_id.in_(photo_ids))
    )
    return set(result.scalars().all())


def _insert_ignoring_duplicates(db: AsyncSession):
    table = AlbumPhoto.__table__
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert(table).on_conflict_do_nothing(index_elements=["album_id", "photo_id"])
    return sqlite_insert(table).on_conflict_do_nothing(index_elements=["album_id", "photo_id"])


async def create_album(
    db: AsyncSession,
    caller: Principal,
    owner_id: UUID,
    name: str,
    description: str | None = None,
) -> Album:
    caller.require_owner(owner_id)
    album = Album(user_id=owner_id, name=_validate_name(name), description=_clean(description))
    db.add(album)
    await db.commit()
    await db.refresh(album)
    logger.info("album event=created user_id=%s album_id=%s", owner_id, album.id)
    return album


async def get_album(db: AsyncSession, caller: Principal, owner_id: UUID, album_id: UUID) -> AlbumSummary:
    caller.require_owner(owner_id)
    album = await _get_owned_album(db, owner_id, album_id)
    return (await _summarize(db, [album]))[0]


async def update_album(
    db: AsyncSession,
    caller: Principal,
    owner_id: UUID,
    album_id: UUID,
    name: str | None = None,
    description: str | None = None,
    cover_photo_id: UUID | None = None,
    clear_cover: bool = False,
) -> AlbumSummary:
    """Last writer wins; ``None`` leaves a field unchanged."""
    caller.require_owner(owner_id)
    album = await _get_owned_album(db, owner_id, album_id)

    if name is not None:
        album.name = _validate_name(name)
    if description is not None:
        album.description = _clean(description)

    if clear_cover:
        album.cover_photo_id = None
    elif cover_photo_id is not None:
        photo_result = await db.execute(
            select(Photo.id).where(Photo.id == cover_photo_id, Photo.user_id == owner_id)
        )
        if photo_result.scalar_one_or_none() is None:
            raise Forbidden("Cover photo must belong to the album owner")

        in_album_result = await db.execute(
            select(AlbumPhoto.photo_id).where(
                AlbumPhoto.album_id == album.id,
                AlbumPhoto.photo_id == cover_photo_id,
            )
        )
        if in_album_result.scalar_one_or_none() is None:
            raise ValidationError("Cover photo must be part of the album")
        album.cover_photo_id = cover_photo_id

    await db.commit()
    await db.refresh(album)
    return (await _summarize(db, [album]))[0]


async def delete_album(db: AsyncSession, caller: Principal, owner_id: UUID, album_id: UUID) -> None:
    """Delete the album and its memberships; member photos are untouched."""
    caller.require_owner(owner_id)
    album = await _get_owned_album(db, owner_id, album_id)
    await delete_with_rules(db, "album", [album.id])
    await db.commit()
    logger.info("album event=deleted user_id=%s album_id=%s", owner_id, album_id)


async def add_photos_to_album(
    db: AsyncSession,
    caller: Principal,
    owner_id: UUID,
    album_id: UUID,
    photo_ids: Iterable[UUID],
) -> list[UUID]:
    """Add every photo not yet in the album and return the ids actually added.

    Pairs already present are skipped silently. The batch is all or nothing:
    if any id is not one of the owner's photos, nothing is inserted.
    """
    caller.require_owner(owner_id)
    album = await _get_owned_album(db, owner_id, album_id)
    album_id = album.id
    requested = ordered_unique(photo_ids)
    if not requested:
        return []

    owned = await _owned_photo_ids(db, owner_id, requested)
    rejected = [photo_id for photo_id in requested if photo_id not in owned]
    if rejected:
        logger.info("album event=add_rejected album_id=%s rejected=%s", album_id, len(rejected))
        raise Forbidden(
            "Photos must belong to the album owner",
            details={"photo_ids": [str(photo_id) for photo_id in rejected]},
        )

    existing = await _existing_member_ids(db, album_id, requested)
    to_add = [photo_id for photo_id in requested if photo_id not in existing]
    if not to_add:
        return []

    max_position_result = await db.execute(
        select(func.max(AlbumPhoto.position)).where(AlbumPhoto.album_id == album_id)
    )
    next_position = (max_position_result.scalar_one() or 0) + 1
    added_at = utcnow()

    rows = [
        {"album_id": album_id, "photo_id": photo_id, "position": next_position + offset, "added_at": added_at}
        for offset, photo_id in enumerate(to_add)
    ]
    # pairs inserted concurrently since the membership read are skipped and not returned
    statement = _insert_ignoring_duplicates(db).values(rows).returning(AlbumPhoto.__table__.c.photo_id)
    try:
        result = await db.execute(statement)
        inserted = set(result.scalars().all())
        await db.commit()
    except IntegrityError as exc:
        # a photo was deleted after the ownership check
        await db.rollback()
        logger.info("album event=add_conflict album_id=%s", album_id)
        raise Conflict("Photos changed while they were being added; nothing was added") from exc

    added = [photo_id for photo_id in to_add if photo_id in inserted]
    logger.info("album event=photos_added album_id=%s added=%s", album_id, len(added))
    return added


async def remove_photo_from_album(
    db: AsyncSession,
    caller: Principal,
    owner_id: UUID,
    album_id: UUID,
    photo_id: UUID,
) -> None:
    """Remove one membership; removing a photo that is not in the album is a no-op."""
    caller.require_owner(owner_id)
    album = await _get_owned_album(db, owner_id, album_id)
    await db.execute(
        delete(AlbumPhoto).where(AlbumPhoto.album_id == album.id, AlbumPhoto.photo_id == photo_id)
    )
    await db.commit()


async def list_albums(db: AsyncSession, caller: Principal, owner_id: UUID) -> list[AlbumSummary]:
    caller.require_owner(owner_id)
    result = await db.execute(
        select(Album).where(Album.user_id == owner_id).order_by(desc(Album.created_at))
    )
    return await _summarize(db, list(result.scalars().all()))


async def list_album_photos(db: AsyncSession, caller: Principal, album_id: UUID, owner_id: UUID) -> list[Photo]:
    caller.require_owner(owner_id)
    album = await _get_owned_album(db, owner_id, album_id)
    return (await _member_photos(db, [album.id]))[album.id]


async def list_available_photos_for_album(
    db: AsyncSession,
    caller: Principal,
    owner_id: UUID,
    album_id: UUID,
) -> list[Photo]:
    """Owner's photos that are not in the album: the candidates for an "add photos" picker."""
    caller.require_owner(owner_id)
    album = await _get_owned_album(db, owner_id, album_id)
    members = select(AlbumPhoto.photo_id).where(AlbumPhoto.album_id == album.id)
    result = await db.execute(
        select(Photo)
        .where(Photo.user_id == owner_id, Photo.id.not_in(members))
        .order_by(desc(Photo.created_at))
    )
    return list(result.scalars().all())
