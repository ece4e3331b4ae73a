"""Tests for database setup."""

from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

import mediasync.db
from mediasync.db import init_db


async def test_init_db_creates_tables(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'init.db'}")
    try:
        await init_db(engine)
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    finally:
        await engine.dispose()

    assert {"jobs", "api_integrations", "media_items"} <= set(tables)


def test_package_exports():
    assert sorted(mediasync.db.__all__) == ["Base", "async_session_maker", "engine", "init_db"]
    assert not hasattr(mediasync.db, "get_db")
