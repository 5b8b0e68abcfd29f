from __future__ import annotations

import logging

from pydantic import BaseModel
from fastapi import APIRouter, Depends, File, Form, Path, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from photoshelf.api.auth import get_principal
from photoshelf.api.params import parse_uuid
from photoshelf.core.context import Principal
from photoshelf.core.database import get_db
from photoshelf.core.errors import StorageError
from photoshelf.core.rate_limit import limiter
from photoshelf.models.photo import Photo
from photoshelf.services import photo_service
from photoshelf.services.storage import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["photos"])


class CreatePhotoPayload(BaseModel):
    storage_key: str
    title: str | None = None
    description: str | None = None


class UpdatePhotoPayload(BaseModel):
    title: str | None = None
    description: str | None = None


def serialize_photo(photo: Photo) -> dict:
    return {
        "id": str(photo.id),
        "user_id": str(photo.user_id),
        "url": photo.url,
        "storage_key": photo.storage_key,
        "title": photo.title,
        "description": photo.description,
        "created_at": photo.created_at.isoformat() if photo.created_at else None,
    }


@router.get("")
async def list_photos(
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    photos = await photo_service.list_photos(db, caller, caller.user_id)
    return [serialize_photo(photo) for photo in photos]


@router.post("", status_code=201)
async def create_photo(
    payload: CreatePhotoPayload,
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    photo = await photo_service.create_photo(
        db,
        caller,
        caller.user_id,
        payload.storage_key,
        store,
        title=payload.title,
        description=payload.description,
    )
    return serialize_photo(photo)


@router.post("/upload", status_code=201)
@limiter.limit("30/minute")
async def upload_photo(
    request: Request,
    file: UploadFile = File(...),
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    filename = file.filename or "upload"
    file_bytes = await file.read()
    photo = await photo_service.upload_photo(
        db,
        caller,
        store,
        filename,
        file_bytes,
        file.content_type,
        title=title,
        description=description,
    )
    return serialize_photo(photo)


@router.get("/{photo_id}")
async def get_photo(
    photo_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    photo = await photo_service.get_photo(db, caller, caller.user_id, parse_uuid(photo_id, "photo id"))
    return serialize_photo(photo)


@router.patch("/{photo_id}")
async def update_photo(
    payload: UpdatePhotoPayload,
    photo_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    photo = await photo_service.update_photo(
        db,
        caller,
        caller.user_id,
        parse_uuid(photo_id, "photo id"),
        title=payload.title,
        description=payload.description,
    )
    return serialize_photo(photo)


@router.delete("/{photo_id}")
async def delete_photo(
    photo_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    photo = await photo_service.delete_photo(db, caller, caller.user_id, parse_uuid(photo_id, "photo id"))

    # The row is gone either way; a blob left behind is only unreachable bytes.
    blob_deleted = True
    try:
        store.delete(caller, photo.storage_key)
    except StorageError as exc:
        logger.warning("photo event=blob_delete_failed photo_id=%s error=%s", photo.id, exc.message)
        blob_deleted = False

    return {"ok": True, "blob_deleted": blob_deleted}
