from datetime import datetime, timezone

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from photoshelf.core.config import settings

db_url = make_url(settings.DATABASE_URL)


def _connect_args(url: str | None = None) -> dict:
    target = make_url(url) if url else db_url
    if target.get_backend_name() != "postgresql":
        return {}
    ssl_required = target.host is not None and target.host.endswith("supabase.com")
    return {
        "statement_cache_size": 0,  # required for Supabase pooler compatibility
        "ssl": "require" if ssl_required else False,
    }


engine = create_async_engine(settings.DATABASE_URL, echo=False, connect_args=_connect_args())
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)

class Base(DeclarativeBase):
    pass

async def get_db():
    async with AsyncSessionLocal() as session:
        yield session

def utcnow() -> datetime:
    return datetime.now(timezone.utc)
