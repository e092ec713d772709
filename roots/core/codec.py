"""
Canonical snapshot encoding for persons and memories.

A snapshot is a version header line followed by compact JSON with sorted
keys. Every field is written explicitly and in a fixed format (ISO dates,
UTC microsecond timestamps, enum values) so equal entities always encode
to identical bytes and therefore to identical content ids.
"""

import json
from datetime import UTC, date, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from roots.models.archive import EntityKind
from roots.models.memory import Memory
from roots.models.person import Person
from roots.utils.exceptions import MalformedError

SCHEMA_TAG = b"roots-snapshot/1\n"
SNAPSHOT_MEDIA_TYPE = "application/vnd.roots.snapshot.v1+json"

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def entity_kind(entity: Person | Memory) -> EntityKind:
    """Return the archive kind of an entity."""
    if isinstance(entity, Person):
        return EntityKind.PERSON
    if isinstance(entity, Memory):
        return EntityKind.MEMORY
    raise TypeError(f"Not an archivable entity: {type(entity).__name__}")


def _date(value: date | None) -> str | None:
    return value.isoformat() if value else None


def _timestamp(value: datetime) -> str:
    return value.astimezone(UTC).strftime(_TIMESTAMP_FORMAT)


def _person_fields(person: Person) -> dict[str, Any]:
    return {
        "kind": EntityKind.PERSON.value,
        "id": person.id,
        "name": person.name,
        "birth_date": _date(person.birth_date),
        "death_date": _date(person.death_date),
        "gender": person.gender.value,
        "biography": person.biography,
        "profile_content_id": person.profile_content_id,
        "parent_ids": sorted(person.parent_ids),
        "children_ids": sorted(person.children_ids),
        "spouse_ids": sorted(person.spouse_ids),
        "extensions": dict(person.extensions),
        "tombstoned": person.tombstoned,
        "version": person.version,
    }


def _memory_fields(memory: Memory) -> dict[str, Any]:
    return {
        "kind": EntityKind.MEMORY.value,
        "id": memory.id,
        "person_ids": sorted(memory.person_ids),
        "title": memory.title,
        "body": memory.body,
        "occurred_on": _date(memory.occurred_on),
        "created_at": _timestamp(memory.created_at),
        # attachment order is meaningful
        "media_content_ids": list(memory.media_content_ids),
        "tags": sorted(memory.tags),
        "created_by": memory.created_by,
        "extensions": dict(memory.extensions),
        "tombstoned": memory.tombstoned,
        "version": memory.version,
    }


def canonicalize(entity: Person | Memory) -> bytes:
    """
    Serialize an entity to its canonical snapshot bytes.

    Args:
        entity: Person or Memory

    Returns:
        Schema tag followed by canonical UTF-8 JSON
    """
    kind = entity_kind(entity)
    fields = _person_fields(entity) if kind == EntityKind.PERSON else _memory_fields(entity)
    body = json.dumps(fields, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return SCHEMA_TAG + body.encode("utf-8")


def parse(data: bytes) -> Person | Memory:
    """
    Decode canonical snapshot bytes back into an entity.

    Args:
        data: Bytes produced by canonicalize

    Returns:
        The decoded Person or Memory

    Raises:
        MalformedError: If the schema tag is missing or unknown, the payload
            is not valid JSON for a known kind, or it is not in canonical form
    """
    data = bytes(data)
    if not data.startswith(SCHEMA_TAG):
        raise MalformedError(
            "Snapshot does not start with a supported schema tag",
            context={"prefix": data[: len(SCHEMA_TAG)].decode("utf-8", errors="replace")},
        )

    try:
        fields = json.loads(data[len(SCHEMA_TAG) :].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedError(f"Snapshot payload is not valid JSON: {e}") from e

    if not isinstance(fields, dict):
        raise MalformedError("Snapshot payload must be a JSON object")

    kind = fields.pop("kind", None)
    try:
        if kind == EntityKind.PERSON.value:
            entity: Person | Memory = Person.model_validate(fields)
        elif kind == EntityKind.MEMORY.value:
            entity = Memory.model_validate(fields)
        else:
            raise MalformedError(f"Unknown snapshot kind: {kind!r}")
    except PydanticValidationError as e:
        raise MalformedError(
            f"Snapshot does not match the {kind} schema",
            context={"errors": e.errors(include_url=False)},
        ) from e

    if canonicalize(entity) != data:
        raise MalformedError(
            "Snapshot is not in canonical form",
            context={"entity_id": entity.id},
        )

    return entity
