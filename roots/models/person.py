"""
Person model: a node of the family graph.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from roots.models.common import check_content_id, check_extensions, ordered_set
from roots.utils.id_generator import generate_person_id


class Gender(str, Enum):
    """Gender tag of a person."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


class Person(BaseModel):
    """
    A member of the family tree.

    Edges are stored on both endpoints: if A lists B in ``children_ids``
    then B lists A in ``parent_ids``, and spouse edges appear on both
    spouses. Edge lists are ordered sets (sorted, de-duplicated) so two
    structurally equal persons always serialize to the same bytes.

    Edges are only changed through FamilyGraph relationship commands,
    never by editing a person directly.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_person_id, min_length=1, description="Person ID")
    name: str = Field(..., min_length=1, description="Display name")
    birth_date: date | None = Field(default=None, description="Date of birth")
    death_date: date | None = Field(default=None, description="Date of death")
    gender: Gender = Field(default=Gender.UNKNOWN, description="Gender tag")
    biography: str | None = Field(default=None, description="Free-text biography")
    profile_content_id: str | None = Field(
        default=None, description="Content id of the archived profile blob"
    )

    parent_ids: list[str] = Field(default_factory=list, description="Parents of this person")
    children_ids: list[str] = Field(default_factory=list, description="Children of this person")
    spouse_ids: list[str] = Field(default_factory=list, description="Spouses of this person")

    extensions: dict[str, str] = Field(default_factory=dict, description="Bounded extension map")
    tombstoned: bool = Field(default=False, description="Logically deleted")
    version: int = Field(default=1, ge=1, description="Incremented by every mutation")

    @field_validator("parent_ids", "children_ids", "spouse_ids")
    @classmethod
    def edges_are_ordered_sets(cls, value: list[str]) -> list[str]:
        return ordered_set(value)

    @field_validator("extensions")
    @classmethod
    def bounded_extensions(cls, value: dict[str, str]) -> dict[str, str]:
        return check_extensions(value)

    @field_validator("profile_content_id")
    @classmethod
    def profile_is_content_id(cls, value: str | None) -> str | None:
        return None if value is None else check_content_id(value)

    @model_validator(mode="after")
    def check_lifespan(self) -> "Person":
        if self.birth_date and self.death_date and self.death_date < self.birth_date:
            raise ValueError("death_date precedes birth_date")
        return self

    @property
    def has_edges(self) -> bool:
        return bool(self.parent_ids or self.children_ids or self.spouse_ids)

    def content_references(self) -> list[str]:
        """Content ids this person points at."""
        return [self.profile_content_id] if self.profile_content_id else []
