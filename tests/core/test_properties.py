"""
Property tests for content addressing and the snapshot codec.

Tests cover:
1. identify() over random byte sequences and near-duplicates
2. parse(canonicalize(e)) == e for generated persons and memories
3. Canonical bytes independent of edge order and timestamp zone
"""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest
from hypothesis import given, settings, strategies as st
from hypothesis.strategies import composite

from roots.core.codec import canonicalize, parse
from roots.core.hashing import identify, is_content_id
from roots.models import Gender, Memory, Person

# =============================================================================
# STRATEGIES
# =============================================================================

entity_ids = st.text(min_size=1, max_size=24)
content_ids = st.binary(max_size=64).map(identify)
extension_maps = st.dictionaries(
    st.from_regex(r"[a-z][a-z0-9_.-]{0,15}", fullmatch=True),
    st.text(max_size=40),
    max_size=5,
)
zones = st.sampled_from(
    [None, UTC, timezone(timedelta(hours=9)), timezone(timedelta(hours=-5, minutes=-30))]
)


@composite
def persons(draw) -> Person:
    """Generates valid Persons with unicode text and unsorted edges."""
    birth = draw(st.none() | st.dates(min_value=date(1600, 1, 1), max_value=date(2100, 1, 1)))
    death = None
    if birth is not None:
        death = draw(st.none() | st.dates(min_value=birth, max_value=date(2100, 12, 31)))

    return Person(
        id=draw(entity_ids),
        name=draw(st.text(min_size=1, max_size=40)),
        birth_date=birth,
        death_date=death,
        gender=draw(st.sampled_from(Gender)),
        biography=draw(st.none() | st.text(max_size=200)),
        profile_content_id=draw(st.none() | content_ids),
        parent_ids=draw(st.lists(entity_ids, max_size=4)),
        children_ids=draw(st.lists(entity_ids, max_size=6)),
        spouse_ids=draw(st.lists(entity_ids, max_size=3)),
        extensions=draw(extension_maps),
        tombstoned=draw(st.booleans()),
        version=draw(st.integers(min_value=1, max_value=10**6)),
    )


@composite
def memories(draw) -> Memory:
    """Generates valid Memories with naive and zone-aware creation times."""
    created_at = draw(
        st.datetimes(
            min_value=datetime(1900, 1, 2),
            max_value=datetime(2100, 1, 1),
            timezones=zones,
        )
    )

    return Memory(
        id=draw(entity_ids),
        person_ids=draw(st.lists(entity_ids, min_size=1, max_size=5)),
        title=draw(st.text(min_size=1, max_size=60)),
        body=draw(st.text(max_size=300)),
        occurred_on=draw(st.none() | st.dates(min_value=date(1600, 1, 1))),
        created_at=created_at,
        media_content_ids=draw(st.lists(content_ids, max_size=4)),
        tags=draw(st.lists(st.text(min_size=1, max_size=12).filter(str.strip), max_size=5)),
        created_by=draw(entity_ids),
        extensions=draw(extension_maps),
        tombstoned=draw(st.booleans()),
        version=draw(st.integers(min_value=1, max_value=10**6)),
    )


# =============================================================================
# CONTENT ADDRESSING
# =============================================================================


@pytest.mark.unit
class TestIdentifyProperties:
    @given(st.binary(max_size=4096))
    def test_well_formed_and_deterministic(self, data):
        content_id = identify(data)

        assert is_content_id(content_id)
        assert identify(bytes(data)) == content_id
        assert identify(bytearray(data)) == content_id

    @given(st.binary(max_size=512), st.binary(max_size=512))
    def test_distinct_bytes_distinct_ids(self, first, second):
        assert (identify(first) == identify(second)) == (first == second)

    @given(st.binary(min_size=1, max_size=1024), st.data())
    def test_single_bit_flip(self, data, choices):
        index = choices.draw(st.integers(min_value=0, max_value=len(data) - 1))
        bit = choices.draw(st.integers(min_value=0, max_value=7))
        flipped = bytearray(data)
        flipped[index] ^= 1 << bit

        assert identify(bytes(flipped)) != identify(data)

    @given(st.binary(max_size=1024), st.binary(min_size=1, max_size=8))
    def test_appended_or_truncated(self, data, suffix):
        assert identify(data + suffix) != identify(data)
        if data:
            assert identify(data[:-1]) != identify(data)


# =============================================================================
# SNAPSHOT CODEC
# =============================================================================


@pytest.mark.unit
class TestCodecProperties:
    @given(persons())
    @settings(max_examples=200)
    def test_person_round_trip(self, person):
        data = canonicalize(person)

        assert parse(data) == person
        assert canonicalize(parse(data)) == data

    @given(memories())
    @settings(max_examples=200)
    def test_memory_round_trip(self, memory):
        data = canonicalize(memory)

        assert parse(data) == memory
        assert canonicalize(parse(data)) == data

    @given(persons(), st.randoms(use_true_random=False))
    def test_edge_order_does_not_change_bytes(self, person, rng):
        shuffled = {}
        for edge in ("parent_ids", "children_ids", "spouse_ids"):
            ids = list(getattr(person, edge))
            rng.shuffle(ids)
            shuffled[edge] = ids + ids[:1]

        reordered = Person(**{**person.model_dump(), **shuffled})

        assert canonicalize(reordered) == canonicalize(person)

    @given(memories(), zones)
    def test_created_at_zone_does_not_change_bytes(self, memory, zone):
        moved = memory.created_at.astimezone(zone) if zone else memory.created_at
        naive_utc = memory.created_at.astimezone(UTC).replace(tzinfo=None)
        other = Memory(**{**memory.model_dump(), "created_at": moved})
        naive = Memory(**{**memory.model_dump(), "created_at": naive_utc})

        assert canonicalize(other) == canonicalize(memory)
        assert canonicalize(naive) == canonicalize(memory)
