"""
Pytest configuration and shared fixtures for the site allocation test suite.

This module provides:
- Database fixtures (in-memory SQLite for fast tests)
- An entity store seeded with ten sites and three engineers
- Loaded orchestrator sessions for one or two operators
- Small record factories for the pure service tests
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from site_allocation.core.db import Base
from site_allocation.schemas.allocation import Allocation, AllocationStatus
from site_allocation.schemas.engineer import Engineer, EngineerStatus
from site_allocation.schemas.site import Site
from site_allocation.scripts.seed_data import ENGINEERS, SITES
from site_allocation.services.lifecycle import new_allocation
from site_allocation.services.orchestrator import AllocationOrchestrator
from site_allocation.services.store import SqlAlchemyEntityStore
import site_allocation.models  # noqa: F401  registers tables on Base.metadata


# Test Database Configuration
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def async_engine():
    """Create async engine for testing with in-memory SQLite."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def store(async_engine) -> SqlAlchemyEntityStore:
    """Empty entity store over the in-memory database."""
    return SqlAlchemyEntityStore(async_sessionmaker(async_engine, expire_on_commit=False))


@pytest_asyncio.fixture
async def seeded_store(store) -> SqlAlchemyEntityStore:
    """Store holding the demo seed: E1/E2 available, E3 unavailable, ten open sites."""
    for engineer in ENGINEERS:
        await store.upsert_engineer(engineer)
    for site in SITES:
        await store.upsert_site(site)
        await store.upsert_allocation(new_allocation(site, allocation_id=f"A-{site.id}"))
    return store


@pytest_asyncio.fixture
async def orchestrator(seeded_store) -> AsyncGenerator[AllocationOrchestrator, None]:
    session = AllocationOrchestrator(seeded_store, operator_id="operator-1")
    await session.load_snapshot()
    yield session


@pytest_asyncio.fixture
async def second_orchestrator(seeded_store) -> AllocationOrchestrator:
    """A second operator session over the same store."""
    session = AllocationOrchestrator(seeded_store, operator_id="operator-2")
    await session.load_snapshot()
    return session


@pytest.fixture
def make_engineer():
    def _make(engineer_id="E1", status=EngineerStatus.AVAILABLE, name=None):
        return Engineer(id=engineer_id, name=name or f"Engineer {engineer_id}", vehicle="Toyota Hilux", status=status)
    return _make


@pytest.fixture
def make_site():
    def _make(site_id="S1", name=None, region="Gauteng", **fields):
        return Site(id=site_id, name=name or f"Site {site_id}", region=region, **fields)
    return _make


@pytest.fixture
def make_allocation():
    def _make(allocation_id="A1", site_id="S1", status=AllocationStatus.UNALLOCATED, engineer_id=None, region="Gauteng"):
        return Allocation(
            id=allocation_id,
            site_id=site_id,
            engineer_id=engineer_id,
            status=status,
            region=region,
        )
    return _make


def assert_allocation_valid(allocation: Allocation):
    """Helper to check the engineer/status invariant on an allocation record"""
    if allocation.status == AllocationStatus.UNALLOCATED:
        assert allocation.engineer_id is None
    else:
        assert allocation.engineer_id is not None


def active_allocations_per_site(allocations) -> dict:
    counts = {}
    for allocation in allocations:
        if allocation.is_active:
            counts[allocation.site_id] = counts.get(allocation.site_id, 0) + 1
    return counts
