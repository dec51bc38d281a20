"""Shared fixtures: in-memory database, temporary storage root, users, client.

Run:  pytest backend/tests -v
"""

import io

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from facility_docs.config import settings
from facility_docs.database import Base, get_db
from facility_docs.models import Facility, User
from facility_docs.services.auth import create_access_token, hash_password
from facility_docs.services.documents import UploadSource

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 32
TEXT_BYTES = b"Inspection notes for the boiler room.\n"


def pdf_upload(name: str = "report.pdf", body: bytes = PDF_BYTES) -> UploadSource:
    return UploadSource(filename=name, stream=io.BytesIO(body), content_type="application/pdf", size=len(body))


def text_upload(name: str = "notes.txt", body: bytes = TEXT_BYTES) -> UploadSource:
    return UploadSource(filename=name, stream=io.BytesIO(body), content_type="text/plain", size=len(body))


def png_upload(name: str = "photo.png", body: bytes = PNG_BYTES) -> UploadSource:
    return UploadSource(filename=name, stream=io.BytesIO(body), content_type="image/png", size=len(body))


@pytest.fixture(autouse=True)
def storage_dir(tmp_path, monkeypatch):
    root = tmp_path / "storage"
    monkeypatch.setattr(settings, "storage_root", str(root))
    return root


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


async def make_user(db, email: str, role: str, facilities: list[Facility] | None = None) -> User:
    user = User(
        email=email,
        name=email.split("@")[0],
        hashed_password=hash_password("password123"),
        role=role,
        facilities=facilities or [],
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def facility(db) -> Facility:
    f = Facility(name="North Plant")
    db.add(f)
    await db.commit()
    await db.refresh(f)
    return f


@pytest_asyncio.fixture
async def other_facility(db) -> Facility:
    f = Facility(name="South Plant")
    db.add(f)
    await db.commit()
    await db.refresh(f)
    return f


@pytest_asyncio.fixture
async def editor(db) -> User:
    return await make_user(db, "editor@example.com", "editor")


@pytest_asyncio.fixture
async def admin(db) -> User:
    return await make_user(db, "admin@example.com", "admin")


@pytest_asyncio.fixture
async def viewer(db, facility) -> User:
    return await make_user(db, "viewer@example.com", "viewer", [facility])


@pytest_asyncio.fixture
async def outsider(db) -> User:
    return await make_user(db, "outsider@example.com", "viewer")


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest_asyncio.fixture
async def client(session_maker):
    from facility_docs.main import app
    from facility_docs.middleware.rate_limit import limiter

    async def _get_test_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    limiter.enabled = False
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    limiter.enabled = True
