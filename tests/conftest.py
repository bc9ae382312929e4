"""Shared fixtures for the maturity assessment engine tests.

Provides a small two-stage pillar used throughout the suite and, for the
integration tests, a file-backed SQLite database driven through aiosqlite.
"""

from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from mat_assessment_engine.core.catalog import FullPillar, load_pillar_definition
from mat_assessment_engine.core.models import AssessmentPeriod, OrgUnit
from mat_assessment_engine.database import create_engine, create_schema

# Stage codes are listed out of order; the loader sorts them by code.
PILLAR_DEFINITION: dict[str, Any] = {
    "code": "SUPPLY_CHAIN",
    "name": "Supply Chain Maturity",
    "description": "Planning, sourcing and delivery practices.",
    "stages": [
        {
            "code": "S2",
            "name": "Integration",
            "themes": [
                {
                    "code": "S2.T1",
                    "name": "Visibility",
                    "questions": [
                        {
                            "code": "S2.T1.Q1",
                            "text": "Is end-to-end inventory visible in one place?",
                            "audit_guidelines": ["Dashboard live"],
                        },
                    ],
                },
            ],
        },
        {
            "code": "S1",
            "name": "Foundation",
            "themes": [
                {
                    "code": "S1.T1",
                    "name": "Planning",
                    "questions": [
                        {
                            "code": "S1.T1.Q1",
                            "text": "Is there a documented demand plan?",
                            "audit_guidelines": ["Documented", "Reviewed quarterly"],
                        },
                        {
                            "code": "S1.T1.Q2",
                            "text": "Is a plan owner named?",
                            "audit_guidelines": ["Owner named"],
                        },
                    ],
                },
            ],
        },
    ],
}

PILLAR_ID = "SUPPLY_CHAIN"

# Entity > Site > two Departments.
ORG_UNITS: list[dict[str, Any]] = [
    {"id": "ent-1", "name": "Europe", "level": 2, "parent_id": None, "parent_path": ""},
    {"id": "site-1", "name": "Rotterdam", "level": 3, "parent_id": "ent-1", "parent_path": "ent-1"},
    {
        "id": "dept-a",
        "name": "Inbound",
        "level": 4,
        "parent_id": "site-1",
        "parent_path": "ent-1/site-1",
    },
    {
        "id": "dept-b",
        "name": "Outbound",
        "level": 4,
        "parent_id": "site-1",
        "parent_path": "ent-1/site-1",
    },
]


@pytest.fixture()
def pillar_definition() -> dict[str, Any]:
    return PILLAR_DEFINITION


@pytest.fixture()
def pillar() -> FullPillar:
    return load_pillar_definition(PILLAR_DEFINITION)


@pytest.fixture()
def org_units() -> list[dict[str, Any]]:
    return [dict(unit) for unit in ORG_UNITS]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'mat.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def seeded_factory(
    session_factory: async_sessionmaker[AsyncSession],
    pillar: FullPillar,
) -> async_sessionmaker[AsyncSession]:
    """Database with the pillar enabled, the org tree and one Open period."""
    from mat_assessment_engine.adapters.repositories import CatalogRepository

    async with session_factory() as session:
        await CatalogRepository(session).seed_pillar(pillar, enabled=True)
        session.add_all([OrgUnit(**unit) for unit in ORG_UNITS])
        session.add(
            AssessmentPeriod(
                id="2026",
                name="Assessment year 2026",
                start_date=date(2000, 1, 1),
                end_date=date(2999, 12, 31),
                status="Open",
            )
        )
        await session.commit()
    return session_factory


@pytest_asyncio.fixture()
async def db_session(
    seeded_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with seeded_factory() as session:
        yield session
        await session.rollback()
