from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from stocktake_service.api import create_app
from stocktake_service.config import Settings
from stocktake_service.database import create_session_factory, get_session
from stocktake_service.management import init_database


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    db_path = tmp_path / "test.db"
    return Settings(
        database_url=f"sqlite+aiosqlite:///{db_path}",
        environment="test",
        access_control_allow_origin="*",
        app_name="Test Stock-take Service",
        ingest_batch_size=2,
    )


@pytest.fixture()
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(settings.database_url, echo=False)
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with create_session_factory(engine)() as session:
        yield session


@pytest.fixture()
async def app(engine: AsyncEngine, settings: Settings) -> AsyncIterator[FastAPI]:
    async_session = create_session_factory(engine)

    async def override_get_session() -> AsyncIterator[AsyncSession]:
        async with async_session() as session:
            yield session

    app = create_app(settings)
    app.dependency_overrides[get_session] = override_get_session

    yield app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
