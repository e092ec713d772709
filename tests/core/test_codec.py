"""
Tests for the snapshot codec.

Tests cover:
1. Round trip for persons and memories
2. Determinism and ordered-set normalisation
3. Rejection of malformed and non-canonical input
"""

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from roots.core.codec import SCHEMA_TAG, canonicalize, entity_kind, parse
from roots.core.hashing import identify
from roots.models import EntityKind, Gender, Memory, Person
from roots.utils.exceptions import MalformedError

MEDIA_A = identify(b"photo-a")
MEDIA_B = identify(b"photo-b")


def _payload(data: bytes) -> dict:
    return json.loads(data[len(SCHEMA_TAG) :])


@pytest.fixture
def person() -> Person:
    return Person(
        id="person_taro",
        name="佐藤 太郎",
        birth_date=date(1950, 4, 1),
        gender=Gender.MALE,
        biography="Fisherman in Kesennuma.",
        parent_ids=["person_z", "person_a"],
        spouse_ids=["person_s"],
        extensions={"source.census": "1960", "app.color": "blue"},
        version=3,
    )


@pytest.fixture
def memory() -> Memory:
    return Memory(
        id="mem_001",
        person_ids=["person_taro", "person_hanako"],
        title="Summer festival",
        body="We went to the Tanabata festival.",
        occurred_on=date(1972, 8, 6),
        created_at=datetime(2024, 3, 1, 9, 30, 15, 123456, tzinfo=timezone(timedelta(hours=9))),
        media_content_ids=[MEDIA_B, MEDIA_A],
        tags=["festival", "summer"],
        created_by="user_1",
    )


@pytest.mark.unit
class TestCanonicalize:
    """Tests for canonicalize()."""

    def test_schema_tag_prefix(self, person):
        assert canonicalize(person).startswith(SCHEMA_TAG)

    def test_compact_sorted_json(self, person):
        """Test body is compact JSON with sorted keys."""
        data = canonicalize(person)
        body = data[len(SCHEMA_TAG) :].decode("utf-8")

        assert ", " not in body and ": " not in body
        keys = list(json.loads(body).keys())
        assert keys == sorted(keys)

    def test_kind_field(self, person, memory):
        assert _payload(canonicalize(person))["kind"] == "person"
        assert _payload(canonicalize(memory))["kind"] == "memory"

    def test_non_ascii_written_as_utf8(self, person):
        assert "佐藤 太郎".encode() in canonicalize(person)

    def test_deterministic(self, person):
        assert canonicalize(person) == canonicalize(person.model_copy())

    def test_edge_order_does_not_matter(self):
        first = Person(id="p", name="A", children_ids=["c2", "c1", "c3"])
        second = Person(id="p", name="A", children_ids=["c3", "c1", "c2", "c1"])

        assert canonicalize(first) == canonicalize(second)
        assert _payload(canonicalize(first))["children_ids"] == ["c1", "c2", "c3"]

    def test_media_order_preserved(self, memory):
        assert _payload(canonicalize(memory))["media_content_ids"] == [MEDIA_B, MEDIA_A]

    def test_timestamps_normalised_to_utc(self, memory):
        assert _payload(canonicalize(memory))["created_at"] == "2024-03-01T00:30:15.123456Z"

    def test_version_changes_bytes(self, person):
        bumped = person.model_copy(update={"version": person.version + 1})
        assert canonicalize(bumped) != canonicalize(person)

    def test_entity_kind(self, person, memory):
        assert entity_kind(person) == EntityKind.PERSON
        assert entity_kind(memory) == EntityKind.MEMORY

    def test_entity_kind_rejects_other_types(self):
        with pytest.raises(TypeError):
            entity_kind({"id": "person_1"})


@pytest.mark.unit
class TestParse:
    """Tests for parse()."""

    def test_person_round_trip(self, person):
        assert parse(canonicalize(person)) == person

    def test_memory_round_trip(self, memory):
        decoded = parse(canonicalize(memory))

        assert decoded == memory
        assert decoded.media_content_ids == [MEDIA_B, MEDIA_A]

    def test_minimal_person_round_trip(self):
        person = Person(id="person_min", name="M")
        assert parse(canonicalize(person)) == person

    def test_tombstoned_round_trip(self, person):
        tombstoned = person.model_copy(update={"tombstoned": True})
        assert parse(canonicalize(tombstoned)).tombstoned is True

    def test_missing_schema_tag(self, person):
        data = canonicalize(person)[len(SCHEMA_TAG) :]
        with pytest.raises(MalformedError, match="schema tag"):
            parse(data)

    def test_unknown_schema_version(self, person):
        data = b"roots-snapshot/2\n" + canonicalize(person)[len(SCHEMA_TAG) :]
        with pytest.raises(MalformedError):
            parse(data)

    def test_invalid_json(self):
        with pytest.raises(MalformedError, match="JSON"):
            parse(SCHEMA_TAG + b"{not json")

    def test_invalid_utf8(self):
        with pytest.raises(MalformedError):
            parse(SCHEMA_TAG + b"\xff\xfe")

    def test_payload_not_object(self):
        with pytest.raises(MalformedError, match="object"):
            parse(SCHEMA_TAG + b"[1,2,3]")

    def test_unknown_kind(self, person):
        payload = _payload(canonicalize(person))
        payload["kind"] = "pet"
        data = SCHEMA_TAG + json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()

        with pytest.raises(MalformedError, match="kind"):
            parse(data)

    def test_schema_violation(self, person):
        payload = _payload(canonicalize(person))
        payload["name"] = ""
        data = SCHEMA_TAG + json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()

        with pytest.raises(MalformedError) as exc_info:
            parse(data)
        assert exc_info.value.context["errors"]

    def test_non_canonical_whitespace_rejected(self, person):
        payload = _payload(canonicalize(person))
        data = SCHEMA_TAG + json.dumps(payload, sort_keys=True, indent=2).encode()

        with pytest.raises(MalformedError, match="canonical"):
            parse(data)

    def test_non_canonical_edge_order_rejected(self, person):
        payload = _payload(canonicalize(person))
        payload["parent_ids"] = list(reversed(payload["parent_ids"]))
        data = SCHEMA_TAG + json.dumps(
            payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode()

        with pytest.raises(MalformedError, match="canonical"):
            parse(data)
