"""
Family memory model: a story, photo set or document about one or more persons.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roots.models.common import (
    check_content_id,
    check_extensions,
    ensure_utc,
    ordered_set,
    utc_now,
)
from roots.utils.id_generator import generate_memory_id


class Memory(BaseModel):
    """
    A family memory attached to one or more persons.

    Features:
    - Person linkage: ``person_ids`` is a non-empty ordered set
    - Media: ``media_content_ids`` keeps attachment order, duplicates dropped
    - Tags: sorted set
    - Lifecycle: tombstone flag instead of physical deletion

    Every media content id must have an archive ContentRecord before the
    memory can be created or updated.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_memory_id, min_length=1, description="Memory ID")
    person_ids: list[str] = Field(..., min_length=1, description="Associated persons")
    title: str = Field(..., min_length=1, description="Title")
    body: str = Field(default="", description="Body text")
    occurred_on: date | None = Field(default=None, description="When the remembered event happened")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp (UTC)")
    media_content_ids: list[str] = Field(default_factory=list, description="Attached media")
    tags: list[str] = Field(default_factory=list, description="Tag set")
    created_by: str = Field(..., min_length=1, description="Creator reference")

    extensions: dict[str, str] = Field(default_factory=dict, description="Bounded extension map")
    tombstoned: bool = Field(default=False, description="Logically deleted")
    version: int = Field(default=1, ge=1, description="Incremented by every mutation")

    @field_validator("person_ids")
    @classmethod
    def persons_are_ordered_set(cls, value: list[str]) -> list[str]:
        return ordered_set(value)

    @field_validator("tags")
    @classmethod
    def tags_are_ordered_set(cls, value: list[str]) -> list[str]:
        return ordered_set([tag.strip() for tag in value])

    @field_validator("media_content_ids")
    @classmethod
    def media_keep_order(cls, value: list[str]) -> list[str]:
        return [check_content_id(item) for item in dict.fromkeys(value)]

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("extensions")
    @classmethod
    def bounded_extensions(cls, value: dict[str, str]) -> dict[str, str]:
        return check_extensions(value)

    def content_references(self) -> list[str]:
        """Content ids this memory points at."""
        return list(self.media_content_ids)
