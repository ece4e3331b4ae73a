"""Pytest configuration and fixtures."""

import os

from cryptography.fernet import Fernet

# Set config BEFORE importing mediasync modules
os.environ["MEDIASYNC_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("MEDIASYNC_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ["MEDIASYNC_GOOGLE_REQUEST_DELAY"] = "0"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from mediasync.core.security import FernetCipher
from mediasync.db.base import Base
from mediasync.db.models import ApiIntegration
from mediasync.services.credentials import CLIENT_ID_KEY, REFRESH_TOKEN_KEY


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed engine so concurrent sessions see the same database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    """Create a test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def cipher() -> FernetCipher:
    """Cipher with a key private to the test."""
    return FernetCipher(Fernet.generate_key())


@pytest.fixture
async def integration(session_maker, cipher) -> ApiIntegration:
    """A fully configured Google Drive integration."""
    async with session_maker() as db:
        row = ApiIntegration(
            provider="gdrive",
            channel_id="channel-1",
            config={
                CLIENT_ID_KEY: "client-id.apps.googleusercontent.com",
                REFRESH_TOKEN_KEY: cipher.encrypt("refresh-token"),
                "gdriveEmail": "owner@example.com",
            },
            api_key_encrypted=cipher.encrypt("client-secret"),
        )
        db.add(row)
        await db.commit()
        return row
