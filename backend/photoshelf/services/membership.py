from __future__ import annotations

from typing import Hashable, Iterable, Sequence, TypeVar
from uuid import UUID

from photoshelf.models.album import AlbumPhoto
from photoshelf.models.photo import Photo

T = TypeVar("T", bound=Hashable)

# most recently added first; position breaks ties inside one batch
MEMBERSHIP_ORDER = (AlbumPhoto.added_at.desc(), AlbumPhoto.position.desc())


def ordered_unique(items: Iterable[T]) -> list[T]:
    return list(dict.fromkeys(items))


def pick_cover(cover_photo_id: UUID | None, members: Sequence[Photo]) -> Photo | None:
    """Representative image of an album.

    ``members`` must be in membership order. The explicit cover wins only
    while it is still a member; otherwise the newest member stands in.
    """
    if cover_photo_id is not None:
        for photo in members:
            if photo.id == cover_photo_id:
                return photo
    return members[0] if members else None
