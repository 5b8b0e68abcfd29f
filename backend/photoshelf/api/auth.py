from pydantic import BaseModel
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from photoshelf.core.config import settings
from photoshelf.core.context import Principal
from photoshelf.core.database import get_db
from photoshelf.core.errors import Unauthorized
from photoshelf.core.rate_limit import limiter, request_access_token
from photoshelf.core.security import create_access_token, decode_access_token
from photoshelf.models.user import User
from photoshelf.services.auth_service import (
    authenticate,
    create_refresh_token_for_user,
    delete_account,
    get_current_user,
    get_user_for_refresh_token,
    principal_for,
    register_user,
    revoke_refresh_token,
)

router = APIRouter(prefix="/auth", tags=["auth"])


class CredentialsPayload(BaseModel):
    email: str
    password: str


class RefreshPayload(BaseModel):
    refresh_token: str | None = None


async def require_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    token = request_access_token(request)
    if not token:
        raise Unauthorized("Not authenticated")

    user_id = decode_access_token(token)
    if user_id is None:
        raise Unauthorized("Invalid or expired token")

    user = await get_current_user(db, user_id)
    if not user:
        raise Unauthorized("User no longer exists")

    return user


async def get_principal(user: User = Depends(require_current_user)) -> Principal:
    return principal_for(user)


def _set_session_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        "access_token",
        access_token,
        httponly=True,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        "refresh_token",
        refresh_token,
        httponly=True,
        samesite="lax",
        max_age=86400 * settings.REFRESH_TOKEN_EXPIRE_DAYS,
    )


async def _session_response(db: AsyncSession, user: User, response: Response) -> dict:
    access_token = create_access_token(user.id)
    raw_refresh_token = await create_refresh_token_for_user(db, user.id)
    _set_session_cookies(response, access_token, raw_refresh_token)
    return {
        "access_token": access_token,
        "refresh_token": raw_refresh_token,
        "token_type": "bearer",
        "user": {"id": str(user.id), "email": user.email},
    }


@router.post("/signup", status_code=201)
@limiter.limit("10/minute")
async def signup(
    request: Request,
    response: Response,
    payload: CredentialsPayload,
    db: AsyncSession = Depends(get_db),
):
    user = await register_user(db, payload.email, payload.password)
    return await _session_response(db, user, response)


@router.post("/login")
@limiter.limit("20/minute")
async def login(
    request: Request,
    response: Response,
    payload: CredentialsPayload,
    db: AsyncSession = Depends(get_db),
):
    user = await authenticate(db, payload.email, payload.password)
    return await _session_response(db, user, response)


@router.post("/refresh")
async def refresh_token(
    request: Request,
    response: Response,
    payload: RefreshPayload | None = None,
    db: AsyncSession = Depends(get_db),
):
    raw_token = (payload.refresh_token if payload else None) or request.cookies.get("refresh_token")
    if not raw_token:
        raise Unauthorized("No refresh token")
    user = await get_user_for_refresh_token(db, raw_token)
    new_access_token = create_access_token(user.id)
    response.set_cookie(
        "access_token",
        new_access_token,
        httponly=True,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return {"access_token": new_access_token, "token_type": "bearer"}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    payload: RefreshPayload | None = None,
    db: AsyncSession = Depends(get_db),
):
    raw_token = (payload.refresh_token if payload else None) or request.cookies.get("refresh_token")
    if raw_token:
        await revoke_refresh_token(db, raw_token)
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    return {"message": "Logged out"}


@router.get("/me")
async def get_me(user: User = Depends(require_current_user)):
    return {"id": str(user.id), "email": user.email, "created_at": user.created_at.isoformat()}


@router.delete("/me")
async def delete_me(
    response: Response,
    caller: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    await delete_account(db, caller)
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    return {"ok": True}
