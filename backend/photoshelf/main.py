import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi import _rate_limit_exceeded_handler
from photoshelf.api.albums import router as albums_router
from photoshelf.api.auth import router as auth_router
from photoshelf.api.photos import router as photos_router
from photoshelf.api.profiles import router as profiles_router
from photoshelf.core.config import settings
from photoshelf.core.errors import PhotoshelfError
from photoshelf.core.rate_limit import limiter

logger = logging.getLogger(__name__)

app = FastAPI(title="Photoshelf", version="1.0.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


async def photoshelf_error_handler(request: Request, exc: PhotoshelfError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request event=failed path=%s code=%s detail=%s", request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

app.add_exception_handler(PhotoshelfError, photoshelf_error_handler)


def _allowed_origins() -> list[str]:
    origins = [settings.FRONTEND_URL.rstrip("/")]
    if settings.FRONTEND_URLS:
        extra = [item.strip().rstrip("/") for item in settings.FRONTEND_URLS.split(",") if item.strip()]
        origins.extend(extra)
    return list(dict.fromkeys(origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(profiles_router)
app.include_router(photos_router)
app.include_router(albums_router)


@app.on_event("startup")
async def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("Photoshelf API started")


@app.get("/health")
async def health():
    return {"status": "ok"}
