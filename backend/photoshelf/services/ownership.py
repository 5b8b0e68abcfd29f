"""
Cascade and clear rules applied when an owned row is deleted.

Deleting a photo removes its memberships but only clears album covers that
point at it; the albums themselves survive. Deleting an album removes its
memberships and leaves the photos alone. Deleting a user removes everything
the user owns, applying the album and photo rules on the way.

The rules run inside the caller's transaction before the row itself is
deleted, so the outcome does not depend on the database enforcing its
foreign-key actions.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from photoshelf.models.album import Album, AlbumPhoto
from photoshelf.models.photo import Photo
from photoshelf.models.profile import Profile
from photoshelf.models.user import RefreshToken, User


class OnDelete(str, enum.Enum):
    CASCADE = "cascade"
    SET_NULL = "set_null"


@dataclass(frozen=True)
class DeleteRule:
    dependent: type
    column: str
    action: OnDelete
    # rules of this entity run against cascaded rows before they are removed
    entity: str | None = None


DELETE_RULES: dict[str, tuple[DeleteRule, ...]] = {
    "photo": (
        DeleteRule(AlbumPhoto, "photo_id", OnDelete.CASCADE),
        DeleteRule(Album, "cover_photo_id", OnDelete.SET_NULL),
    ),
    "album": (
        DeleteRule(AlbumPhoto, "album_id", OnDelete.CASCADE),
    ),
    "user": (
        DeleteRule(Album, "user_id", OnDelete.CASCADE, entity="album"),
        DeleteRule(Photo, "user_id", OnDelete.CASCADE, entity="photo"),
        DeleteRule(Profile, "user_id", OnDelete.CASCADE),
        DeleteRule(RefreshToken, "user_id", OnDelete.CASCADE),
    ),
}

ENTITY_MODELS: dict[str, type] = {
    "photo": Photo,
    "album": Album,
    "user": User,
}


async def apply_delete_rules(db: AsyncSession, entity: str, ids: list[UUID]) -> None:
    for rule in DELETE_RULES[entity]:
        column = getattr(rule.dependent, rule.column)
        if rule.action is OnDelete.SET_NULL:
            await db.execute(update(rule.dependent).where(column.in_(ids)).values({rule.column: None}))
            continue

        if rule.entity is not None:
            result = await db.execute(select(rule.dependent.id).where(column.in_(ids)))
            child_ids = list(result.scalars().all())
            if child_ids:
                await apply_delete_rules(db, rule.entity, child_ids)
        await db.execute(delete(rule.dependent).where(column.in_(ids)))


async def delete_with_rules(db: AsyncSession, entity: str, ids: Iterable[UUID]) -> None:
    """Delete rows of ``entity`` after applying its dependent rules. Does not commit."""
    ids = list(ids)
    if not ids:
        return
    await apply_delete_rules(db, entity, ids)
    model = ENTITY_MODELS[entity]
    await db.execute(delete(model).where(model.id.in_(ids)))
