"""Relationship kinds and graph commit events."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from roots.models.memory import Memory
from roots.models.person import Person


class RelationshipKind(str, Enum):
    """
    Kinds of person-to-person edges.

    ``PARENT``: a is a parent of b. ``CHILD``: a is a child of b (stored as
    the mirrored PARENT edge). ``SPOUSE``: undirected.
    """

    PARENT = "parent"
    CHILD = "child"
    SPOUSE = "spouse"


class CommitEvent(BaseModel):
    """
    Emitted by FamilyGraph after a command commits.

    ``entities`` holds the committed version of every entity the
    command touched, mirrored edge endpoints included.
    """

    model_config = ConfigDict(frozen=True)

    command: str
    actor_id: str
    entities: list[Person | Memory] = Field(default_factory=list)

    @property
    def entity_ids(self) -> list[str]:
        return [entity.id for entity in self.entities]
