from pydantic import BaseModel
from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from photoshelf.api.auth import get_principal
from photoshelf.api.params import parse_uuid
from photoshelf.api.photos import serialize_photo
from photoshelf.core.context import Principal
from photoshelf.core.database import get_db
from photoshelf.services import album_service
from photoshelf.services.album_service import AlbumSummary

router = APIRouter(prefix="/albums", tags=["albums"])


class CreateAlbumPayload(BaseModel):
    name: str
    description: str | None = None


class UpdateAlbumPayload(BaseModel):
    name: str | None = None
    description: str | None = None
    cover_photo_id: str | None = None
    clear_cover: bool = False


class AddAlbumPhotosPayload(BaseModel):
    photo_ids: list[str]


def serialize_album(summary: AlbumSummary) -> dict:
    album = summary.album
    return {
        "id": str(album.id),
        "name": album.name,
        "description": album.description,
        "cover_photo_id": str(album.cover_photo_id) if album.cover_photo_id else None,
        "cover_photo": serialize_photo(summary.cover) if summary.cover else None,
        "photo_count": summary.photo_count,
        "created_at": album.created_at.isoformat() if album.created_at else None,
    }


@router.get("")
async def list_albums(
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    summaries = await album_service.list_albums(db, caller, caller.user_id)
    return [serialize_album(summary) for summary in summaries]


@router.post("", status_code=201)
async def create_album(
    payload: CreateAlbumPayload,
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    album = await album_service.create_album(db, caller, caller.user_id, payload.name, payload.description)
    return serialize_album(AlbumSummary(album=album, photo_count=0, cover=None))


@router.get("/{album_id}")
async def get_album(
    album_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    summary = await album_service.get_album(db, caller, caller.user_id, parse_uuid(album_id, "album id"))
    return serialize_album(summary)


@router.patch("/{album_id}")
async def update_album(
    payload: UpdateAlbumPayload,
    album_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    cover_photo_id = None
    if payload.cover_photo_id is not None:
        cover_photo_id = parse_uuid(payload.cover_photo_id, "cover_photo_id")

    summary = await album_service.update_album(
        db,
        caller,
        caller.user_id,
        parse_uuid(album_id, "album id"),
        name=payload.name,
        description=payload.description,
        cover_photo_id=cover_photo_id,
        clear_cover=payload.clear_cover,
    )
    return serialize_album(summary)


@router.delete("/{album_id}")
async def delete_album(
    album_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    await album_service.delete_album(db, caller, caller.user_id, parse_uuid(album_id, "album id"))
    return {"ok": True}


@router.get("/{album_id}/photos")
async def list_album_photos(
    album_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    photos = await album_service.list_album_photos(db, caller, parse_uuid(album_id, "album id"), caller.user_id)
    return [serialize_photo(photo) for photo in photos]


@router.get("/{album_id}/available-photos")
async def list_available_photos(
    album_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    photos = await album_service.list_available_photos_for_album(
        db, caller, caller.user_id, parse_uuid(album_id, "album id")
    )
    return [serialize_photo(photo) for photo in photos]


@router.post("/{album_id}/photos")
async def add_photos_to_album(
    payload: AddAlbumPhotosPayload,
    album_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    album_uuid = parse_uuid(album_id, "album id")
    photo_ids = [parse_uuid(photo_id, "photo id") for photo_id in payload.photo_ids]
    added = await album_service.add_photos_to_album(db, caller, caller.user_id, album_uuid, photo_ids)
    return {"ok": True, "inserted": len(added), "added_photo_ids": [str(photo_id) for photo_id in added]}


@router.delete("/{album_id}/photos/{photo_id}")
async def remove_photo_from_album(
    album_id: str = Path(...),
    photo_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    await album_service.remove_photo_from_album(
        db,
        caller,
        caller.user_id,
        parse_uuid(album_id, "album id"),
        parse_uuid(photo_id, "photo id"),
    )
    return {"ok": True}
