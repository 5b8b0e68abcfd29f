from pydantic import BaseModel
from fastapi import APIRouter, Depends, File, Path, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from photoshelf.api.auth import get_principal
from photoshelf.api.params import parse_uuid
from photoshelf.core.context import Principal
from photoshelf.core.database import get_db
from photoshelf.models.profile import Profile
from photoshelf.services import profile_service
from photoshelf.services.storage import BlobStore, get_blob_store

router = APIRouter(prefix="/profiles", tags=["profiles"])


class UpdateProfilePayload(BaseModel):
    display_name: str | None = None
    avatar_url: str | None = None


def serialize_profile(profile: Profile) -> dict:
    return {
        "id": str(profile.id),
        "user_id": str(profile.user_id),
        "display_name": profile.display_name,
        "avatar_url": profile.avatar_url,
        "created_at": profile.created_at.isoformat() if profile.created_at else None,
    }


@router.get("/me")
async def get_my_profile(
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    profile = await profile_service.get_profile(db, caller, caller.user_id)
    return serialize_profile(profile)


@router.patch("/me")
async def update_my_profile(
    payload: UpdateProfilePayload,
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    profile = await profile_service.update_profile(
        db,
        caller,
        caller.user_id,
        display_name=payload.display_name,
        avatar_url=payload.avatar_url,
    )
    return serialize_profile(profile)


@router.post("/me/avatar")
async def upload_my_avatar(
    file: UploadFile = File(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    file_bytes = await file.read()
    profile = await profile_service.upload_avatar(
        db, caller, store, file.filename or "avatar", file_bytes, file.content_type
    )
    return serialize_profile(profile)


@router.get("/{user_id}")
async def get_profile(
    user_id: str = Path(...),
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    profile = await profile_service.get_profile(db, caller, parse_uuid(user_id, "user id"))
    return serialize_profile(profile)
