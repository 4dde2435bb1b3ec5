"""Tests for viewing and updating application settings."""

import asyncio
import pathlib
import sys

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel, select

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from app import crud, database, main
from app.main import app
from app.database import get_session
from app.models import Permission, Settings, User
from app.auth import get_password_hash
from app.crud import ensure_permissions_exist
from app.acl import ALL_PERMISSIONS


async def _setup_test_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_session():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with TestSession() as session:
        await ensure_permissions_exist(session, ALL_PERMISSIONS)
        admin = User(
            name="Admin",
            email="admin@example.com",
            password_hash=get_password_hash("adminpass"),
            role="admin",
        )
        learner = User(
            name="Learner",
            email="learner@example.com",
            password_hash=get_password_hash("learnerpass"),
            role="learner",
        )
        session.add(admin)
        session.add(learner)
        await session.commit()

    return TestSession


def test_settings_endpoints():
    async def run():
        TestSession = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            # Initial settings read
            resp = await client.get("/settings/")
            assert resp.status_code == 200
            data = resp.json()
            assert data["site_name"] == "MOOC"
            assert data["badge_minimum_score"] == 70.0
            assert data["certificate_minimum_score"] == 70.0

            # Non-admin attempt to update settings
            resp = await client.post(
                "/login", json={"email": "learner@example.com", "password": "learnerpass"}
            )
            assert resp.status_code == 200
            learner_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
            resp = await client.put(
                "/settings/",
                headers=learner_headers,
                json={"certificate_minimum_score": 0},
            )
            assert resp.status_code == 403

            # Admin updates settings
            resp = await client.post(
                "/login", json={"email": "admin@example.com", "password": "adminpass"}
            )
            assert resp.status_code == 200
            admin_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
            resp = await client.put(
                "/settings/",
                headers=admin_headers,
                json={"site_name": "Open Campus", "certificate_minimum_score": 75},
            )
            assert resp.status_code == 200
            data = resp.json()
            assert data["site_name"] == "Open Campus"
            assert data["certificate_minimum_score"] == 75.0
            assert data["badge_minimum_score"] == 70.0

            # Thresholds are percentages
            resp = await client.put(
                "/settings/",
                headers=admin_headers,
                json={"badge_minimum_score": 150},
            )
            assert resp.status_code == 422

            # Updated values persist on subsequent read
            resp = await client.get("/settings/")
            assert resp.status_code == 200
            data = resp.json()
            assert data["site_name"] == "Open Campus"
            assert data["certificate_minimum_score"] == 75.0

            resp = await client.get("/")
            assert resp.json() == {"message": "Welcome to Open Campus API"}

    asyncio.run(run())


def test_settings_row_created_by_a_concurrent_caller_is_reused(monkeypatch):
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            session.add(Settings(site_name="Seeded elsewhere"))
            await session.commit()

        # the first lookup misses, as if the other caller had not committed yet
        real_load = crud._load_settings
        calls = {"n": 0}

        async def load_missing_once(db):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await real_load(db)

        monkeypatch.setattr(crud, "_load_settings", load_missing_once)

        async with TestSession() as session:
            settings = await crud.get_settings(session)
            assert settings.site_name == "Seeded elsewhere"
            assert calls["n"] == 2

        async with TestSession() as session:
            result = await session.execute(select(Settings))
            assert len(result.scalars().all()) == 1

    asyncio.run(run())


def test_startup_seeds_settings(monkeypatch):
    async def run():
        engine = create_async_engine("sqlite+aiosqlite:///:memory:")
        TestSession = async_sessionmaker(engine, expire_on_commit=False)
        monkeypatch.setattr(database, "engine", engine)
        monkeypatch.setattr(main, "async_session", TestSession)
        monkeypatch.setattr(main, "BADGE_CHECK_INTERVAL_HOURS", 0)

        await main.on_startup()

        async with TestSession() as session:
            result = await session.execute(select(Settings))
            rows = result.scalars().all()
            assert len(rows) == 1
            assert rows[0].certificate_minimum_score == 70.0
            result = await session.execute(select(Permission))
            assert {p.name for p in result.scalars().all()} == set(ALL_PERMISSIONS)
        await engine.dispose()

    asyncio.run(run())
