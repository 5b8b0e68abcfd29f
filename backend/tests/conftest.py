"""
Pytest configuration and fixtures for photoshelf tests.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STORAGE_PUBLIC_BASE_URL"] = "https://cdn.test/photos"

import pytest
from botocore.exceptions import ClientError
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import photoshelf.models  # noqa: F401
from photoshelf.core.context import Principal
from photoshelf.core.database import Base, get_db
from photoshelf.main import app
from photoshelf.services import auth_service, photo_service
from photoshelf.services.storage import BlobStore, get_blob_store

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PASSWORD = "secret123"


class FakeS3Client:
    """Dict-backed stand-in for the handful of boto3 S3 calls BlobStore makes."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_with: Exception | None = None

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def put_object(self, Bucket, Key, Body, ContentType):
        self._maybe_fail()
        self.objects[Key] = (Body, ContentType)

    def delete_object(self, Bucket, Key):
        self._maybe_fail()
        self.objects.pop(Key, None)

    def head_object(self, Bucket, Key):
        self._maybe_fail()
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": len(self.objects[Key][0])}


@pytest.fixture
async def engine():
    """In-memory SQLite engine with foreign keys enforced and the schema created."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def blob_store(s3_client) -> BlobStore:
    return BlobStore(client=s3_client, bucket_name="photos", public_base_url="https://cdn.test/photos")


@pytest.fixture
def make_user(db):
    """Register an account and return its Principal."""

    async def _make(email: str) -> Principal:
        user = await auth_service.register_user(db, email, PASSWORD)
        return auth_service.principal_for(user)

    return _make


@pytest.fixture
async def alice(make_user) -> Principal:
    return await make_user("alice@example.com")


@pytest.fixture
async def bob(make_user) -> Principal:
    return await make_user("bob@example.com")


@pytest.fixture
def make_photo(db, blob_store):
    """Upload a small PNG for ``owner`` and return the Photo row."""

    async def _make(owner: Principal, title: str | None = None):
        return await photo_service.upload_photo(
            db, owner, blob_store, "photo.png", PNG_BYTES, "image/png", title=title
        )

    return _make


@pytest.fixture
async def client(session_factory, blob_store):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def api_signup(client):
    """Sign up through the API; returns (auth headers, user id)."""

    async def _signup(email: str) -> tuple[dict[str, str], str]:
        response = await client.post("/auth/signup", json={"email": email, "password": PASSWORD})
        assert response.status_code == 201, response.text
        client.cookies.clear()
        body = response.json()
        return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]["id"]

    return _signup
