"""
Tests for change log implementations (in-memory and SQLite).

Tests cover:
1. Sequencing and per-entity chaining
2. Lazy, restartable history views
3. Durability of the SQLite log
"""

from datetime import UTC, datetime, timedelta

import pytest

from roots.core.changelog import InMemoryChangeLog, SQLiteChangeLog
from roots.core.hashing import identify
from roots.models import ChangeLogEntry, EntityKind
from roots.utils.exceptions import ChangeLogError

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


def make_entry(entity_id: str, n: int, previous: str | None) -> ChangeLogEntry:
    content_id = identify(f"{entity_id}:{n}".encode())
    return ChangeLogEntry(
        entity_id=entity_id,
        entity_kind=EntityKind.PERSON,
        content_id=content_id,
        timestamp=BASE_TIME + timedelta(seconds=n),
        actor_id="user_1",
        previous_content_id=previous,
        tx_ref=f"0x{n:064x}",
        location=content_id,
        size=100 + n,
        media_type="application/vnd.roots.snapshot.v1+json",
    )


async def append_chain(log, entity_id: str, count: int, start: int = 0) -> list[ChangeLogEntry]:
    stored = []
    head = await log.head(entity_id)
    previous = head.content_id if head else None
    for n in range(start, start + count):
        entry = await log.append(make_entry(entity_id, n, previous))
        stored.append(entry)
        previous = entry.content_id
    return stored


@pytest.fixture(params=["memory", "sqlite"])
async def any_log(request, tmp_path):
    if request.param == "memory":
        log = InMemoryChangeLog()
    else:
        log = SQLiteChangeLog(db_path=str(tmp_path / "changelog.db"))
    await log.initialize()
    yield log
    await log.close()


class TestChangeLogContract:
    """Behaviour shared by every change log backend."""

    async def test_append_assigns_sequence(self, any_log):
        first = await any_log.append(make_entry("p1", 0, None))
        second = await any_log.append(make_entry("p2", 1, None))

        assert first.sequence == 1
        assert second.sequence == 2
        assert await any_log.last_sequence() == 2

    async def test_head(self, any_log):
        entries = await append_chain(any_log, "p1", 3)

        assert await any_log.head("p1") == entries[-1]
        assert await any_log.head("p2") is None

    async def test_first_entry_must_not_have_previous(self, any_log):
        with pytest.raises(ChangeLogError):
            await any_log.append(make_entry("p1", 0, identify(b"phantom")))

    async def test_entry_must_extend_head(self, any_log):
        await append_chain(any_log, "p1", 2)

        with pytest.raises(ChangeLogError) as exc_info:
            await any_log.append(make_entry("p1", 5, None))

        assert exc_info.value.context["entity_id"] == "p1"
        assert await any_log.last_sequence() == 2

    async def test_history_oldest_first(self, any_log):
        p1 = await append_chain(any_log, "p1", 2)
        await append_chain(any_log, "p2", 2, start=10)
        p1 += await append_chain(any_log, "p1", 1, start=20)

        history = await any_log.history_of("p1").to_list()

        assert history == p1
        assert [e.sequence for e in history] == [1, 2, 5]
        assert history[1].previous_content_id == history[0].content_id

    async def test_history_of_unknown_entity_is_empty(self, any_log):
        assert await any_log.history_of("nobody").to_list() == []

    async def test_entries_in_append_order(self, any_log):
        await append_chain(any_log, "p1", 1)
        await append_chain(any_log, "p2", 1, start=1)

        entries = await any_log.entries().to_list()

        assert [e.entity_id for e in entries] == ["p1", "p2"]

    async def test_view_is_restartable(self, any_log):
        await append_chain(any_log, "p1", 2)
        view = any_log.history_of("p1")

        first_pass = await view.to_list()
        await append_chain(any_log, "p1", 1, start=2)
        second_pass = await view.to_list()

        assert len(first_pass) == 2
        assert len(second_pass) == 3
        assert second_pass[:2] == first_pass

    async def test_iteration_is_bounded_at_start(self, any_log):
        await append_chain(any_log, "p1", 2)
        seen = []

        async for entry in any_log.history_of("p1"):
            seen.append(entry)
            if len(seen) == 1:
                await append_chain(any_log, "p1", 1, start=2)

        assert len(seen) == 2

    async def test_paging(self, any_log):
        await append_chain(any_log, "p1", 7)
        await append_chain(any_log, "p2", 3, start=100)

        from roots.core.changelog import ChangeLogView

        view = ChangeLogView(any_log, "p1", page_size=2)

        assert [e.sequence for e in await view.to_list()] == list(range(1, 8))


@pytest.mark.integration
class TestSQLiteChangeLog:
    """SQLite-specific behaviour."""

    async def test_round_trips_all_fields(self, tmp_path):
        log = SQLiteChangeLog(db_path=str(tmp_path / "changelog.db"))
        await log.initialize()
        try:
            stored = await log.append(make_entry("p1", 0, None))
            (loaded,) = await log.history_of("p1").to_list()
            assert loaded == stored
            assert loaded.timestamp.tzinfo is not None
        finally:
            await log.close()

    async def test_persists_across_connections(self, tmp_path):
        db_path = str(tmp_path / "changelog.db")
        log = SQLiteChangeLog(db_path=db_path)
        await log.initialize()
        entries = await append_chain(log, "p1", 2)
        await log.close()

        reopened = SQLiteChangeLog(db_path=db_path)
        await reopened.initialize()
        try:
            assert await reopened.head("p1") == entries[-1]
            more = await append_chain(reopened, "p1", 1, start=2)
            assert more[0].sequence == 3
        finally:
            await reopened.close()
