"""
Shared fixtures for the Assembly Factory tests

Settings are read once at import time, so the environment is prepared
before anything from assembly_factory is imported.
"""

import os

os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("ENVIRONMENT", "test")

from typing import Iterable, List  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from assembly_factory.core import database  # noqa: E402
from assembly_factory.core.parts_catalog import PartDescriptor, PartsCatalog, parts_catalog  # noqa: E402
from assembly_factory.models.part import PartType  # noqa: E402
from assembly_factory.seeds.catalog import DEFAULT_PARTS, seed_catalog  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def descriptor(code: str, functional_type: PartType = PartType.FULLSTACK, **fields) -> PartDescriptor:
    values = {"name": code.replace("_", " ").title(), "category": "SPORT"}
    values.update(fields)
    return PartDescriptor(code=code, functional_type=functional_type, **values)


def make_catalog(parts: Iterable[PartDescriptor]) -> PartsCatalog:
    catalog = PartsCatalog()
    catalog.replace(parts)
    return catalog


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_parts_catalog():
    """Each test sees the catalog of its own database."""
    parts_catalog.invalidate()
    yield
    parts_catalog.invalidate()


@pytest.fixture
def sample_catalog() -> PartsCatalog:
    return make_catalog(
        [
            descriptor("scoring"),
            descriptor("schedule", name="Training Schedule"),
            descriptor("stats_card", PartType.WIDGET, category="FOUNDATION"),
            descriptor("score_input", PartType.FORM_INPUT),
        ]
    )


@pytest.fixture
async def db_engine(tmp_path):
    engine = database.build_engine(f"sqlite+aiosqlite:///{tmp_path / 'factory.db'}")
    await database.create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(db_engine):
    session_factory = database.build_session_factory(db_engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded_db(db):
    await seed_catalog(db)
    return db


@pytest.fixture
def default_part_codes() -> List[str]:
    return [part["code"] for part in DEFAULT_PARTS]


@pytest.fixture
def client(tmp_path, monkeypatch):
    """API client on a throwaway SQLite file; lifespan creates tables and seeds the catalog."""
    from assembly_factory.main import create_app

    engine = database.build_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setattr(database, "engine", engine)
    monkeypatch.setattr(database, "AsyncSessionLocal", database.build_session_factory(engine))

    with TestClient(create_app()) as test_client:
        yield test_client
