import os
import tempfile

# Settings are read at import time, so these must be set before importing app.*
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="propertyhub-uploads-"))

import httpx
import pytest

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

# Import Base + all models so metadata is complete
from app.models.base import Base
from app.models.user import User  # noqa: F401
from app.models.property import Property, PropertyFeature  # noqa: F401

from app.main import app
from app.core.db import get_db
from app.services.storage import LocalImageStore, get_image_store

from fixtures_seed import (  # noqa: F401
    admin_headers,
    admin_user,
    user_headers,
    regular_user,
)


def _test_db_url() -> str:
    return os.getenv("DATABASE_URL_TEST", "sqlite+aiosqlite:///:memory:")


@pytest.fixture
async def async_engine():
    url = _test_db_url()
    kwargs = {}
    if url.startswith("sqlite"):
        # one shared in-memory database for every connection
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}

    engine = create_async_engine(url, **kwargs)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(async_engine):
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False, class_=AsyncSession)
    async with session_factory() as session:
        yield session


@pytest.fixture
def image_store(tmp_path) -> LocalImageStore:
    return LocalImageStore(
        str(tmp_path / "uploads"),
        "/uploads/properties",
        max_file_size=1024 * 1024,
        max_files=10,
    )


@pytest.fixture
async def client(db_session: AsyncSession, image_store: LocalImageStore):
    """
    HTTP client that uses the test DB session and a tmp upload dir via dependency override.
    """
    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_image_store] = lambda: image_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
