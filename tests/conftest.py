"""Shared fixtures for archive tests.

Every fixture builds fresh in-memory backends so tests are isolated.
SQLite-backed tests use ``tmp_path`` for their database files.
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest

from roots.core.changelog import InMemoryChangeLog
from roots.core.content_store import InMemoryContentStore
from roots.core.graph_store import FamilyGraph, InMemoryGraphBackend
from roots.core.ledger import InMemoryLedger
from roots.models import Person
from roots.services import ArchiveService, FamilyArchive


class SteppingClock:
    """Deterministic clock: each call returns the previous time plus ``step``."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2024, 1, 1, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def graph_backend() -> InMemoryGraphBackend:
    return InMemoryGraphBackend()


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def ledger(clock) -> InMemoryLedger:
    return InMemoryLedger(clock=clock)


@pytest.fixture
def changelog() -> InMemoryChangeLog:
    return InMemoryChangeLog()


@pytest.fixture
async def archive_service(content_store, ledger, changelog) -> AsyncGenerator[ArchiveService, None]:
    service = ArchiveService(
        content_store=content_store,
        ledger=ledger,
        changelog=changelog,
        store_timeout=1.0,
        ledger_timeout=1.0,
        retry_delay=0.0,
    )
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture
async def graph(graph_backend, archive_service) -> AsyncGenerator[FamilyGraph, None]:
    """Family graph with the archive as content index but no commit listener."""
    family_graph = FamilyGraph(backend=graph_backend, content_index=archive_service)
    await family_graph.initialize()
    yield family_graph
    await family_graph.close()


@pytest.fixture
async def family_archive(
    graph_backend, content_store, ledger, changelog
) -> AsyncGenerator[FamilyArchive, None]:
    archive = FamilyArchive(
        graph_backend=graph_backend,
        content_store=content_store,
        ledger=ledger,
        changelog=changelog,
    )
    archive.archive.retry_delay = 0.0
    await archive.initialize()
    yield archive
    await archive.close()


@pytest.fixture
def sample_person() -> Person:
    return Person(id="person_hanako", name="Hanako Sato")
