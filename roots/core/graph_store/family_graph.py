"""
Family graph: transactional commands and ancestry queries over a GraphBackend.

Every command follows the same shape:
1. Lock every entity it touches (sorted order, see KeyedLock)
2. Load current versions and stage new ones
3. Check all invariants against the staged state
4. Write the staged batch in one backend call
5. Publish a CommitEvent while the locks are still held

If any check fails, nothing is written and an InvariantViolation naming
the rule is raised.
"""

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import nullcontext
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from roots.core.graph_store.base import ContentIndex, GraphBackend
from roots.models.memory import Memory
from roots.models.person import Person
from roots.models.relationships import CommitEvent, RelationshipKind
from roots.utils.exceptions import (
    CycleDetected,
    DepthExceeded,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from roots.utils.locks import KeyedLock
from roots.utils.logger import get_logger

logger = get_logger(__name__)

CommitListener = Callable[[CommitEvent], Awaitable[None]]

DEFAULT_MAX_TRAVERSAL_DEPTH = 64

_PERSON_IMMUTABLE = frozenset(
    {"id", "parent_ids", "children_ids", "spouse_ids", "tombstoned", "version"}
)
_MEMORY_IMMUTABLE = frozenset({"id", "created_at", "created_by", "tombstoned", "version"})


class FamilyGraph:
    """
    Owns persons, memories and their relationship edges.

    Invariants enforced on every command:
    - Parent/child and spouse edges are mirrored on both endpoints
    - Parent/child edges form a DAG (nobody is their own ancestor)
    - A pair of persons is never both spouses and parent/child
    - Memories reference existing, live persons
    - Every referenced content id has an archive record
    - Tombstoned entities are never mutated again
    """

    def __init__(
        self,
        backend: GraphBackend,
        content_index: ContentIndex | None = None,
        max_traversal_depth: int = DEFAULT_MAX_TRAVERSAL_DEPTH,
    ):
        """
        Initialize the family graph.

        Args:
            backend: Graph persistence backend
            content_index: Archive lookup for content id references. Without
                one, any entity that references content is rejected.
            max_traversal_depth: Generations an ancestry walk may cover
                before failing closed with DepthExceeded
        """
        if max_traversal_depth < 1:
            raise ValueError("max_traversal_depth must be at least 1")

        self.backend = backend
        self.content_index = content_index
        self.max_traversal_depth = max_traversal_depth

        self._locks = KeyedLock()
        self._topology = asyncio.Lock()
        self._listeners: list[CommitListener] = []

    async def initialize(self) -> None:
        await self.backend.initialize()

    async def close(self) -> None:
        await self.backend.close()

    def subscribe(self, listener: CommitListener) -> None:
        """
        Register a coroutine called with every CommitEvent.

        Listeners run in registration order while the command's entity
        locks are held. Their exceptions propagate to the command caller;
        the graph mutation itself remains committed.
        """
        self._listeners.append(listener)

    # ═══════════════════════════════════════════════════════════
    # PERSON COMMANDS
    # ═══════════════════════════════════════════════════════════

    async def create_person(self, person: Person, actor_id: str = "system") -> Person:
        """
        Add a new person without edges.

        Raises:
            InvariantViolation: duplicate_id, edges_via_link, tombstoned,
                dangling_content
        """
        async with self._locks.hold(person.id):
            await self._require_unused_id(person.id)
            if person.has_edges:
                raise InvariantViolation(
                    "edges_via_link",
                    "New persons start without edges; use link_relationship",
                    context={"entity_id": person.id},
                )
            if person.tombstoned:
                raise InvariantViolation(
                    "tombstoned",
                    "Cannot create a tombstoned person",
                    context={"entity_id": person.id},
                )
            await self._require_content(person)

            staged = person.model_copy(update={"version": 1})
            await self.backend.save(persons=[staged])
            logger.bind(entity_id=staged.id).info(f"Person created: {staged.id}")

            await self._publish("create_person", actor_id, [staged])
            return staged

    async def update_person(
        self, person_id: str, changes: dict[str, Any], actor_id: str = "system"
    ) -> Person:
        """
        Apply field changes to a person.

        Edges, id, version and tombstone flag cannot be changed here.
        An update that changes nothing returns the current version unchanged.

        Raises:
            InvariantViolation: immutable_field, unknown_entity, tombstoned,
                dangling_content
            ValidationError: If the changed fields fail schema validation
        """
        self._reject_immutable(person_id, changes, _PERSON_IMMUTABLE)

        async with self._locks.hold(person_id):
            current = await self._require_person(person_id)
            staged = self._revise(current, changes)
            if self._same_content(current, staged):
                return current

            await self._require_content(staged)
            await self.backend.save(persons=[staged])
            logger.bind(entity_id=person_id, changed=sorted(changes)).info(
                f"Person updated: {person_id} v{staged.version}"
            )

            await self._publish("update_person", actor_id, [staged])
            return staged

    async def link_relationship(
        self, kind: RelationshipKind | str, a: str, b: str, actor_id: str = "system"
    ) -> tuple[Person, Person]:
        """
        Create a relationship edge and its mirror in one transaction.

        Args:
            kind: parent (a is parent of b), child (a is child of b) or spouse
            a: First person ID
            b: Second person ID
            actor_id: Who made the change

        Returns:
            Updated (a, b) as stored (after normalising ``child`` to ``parent``)

        Raises:
            CycleDetected: If the parent edge would make someone their own ancestor
            DepthExceeded: If the ancestry walk exceeds max_traversal_depth
            InvariantViolation: self_link, unknown_entity, tombstoned,
                edge_exists, conflicting_edge, mirrored_edges
        """
        kind, a, b = self._normalize(kind, a, b)
        if a == b:
            if kind == RelationshipKind.PARENT:
                raise CycleDetected(
                    "A person cannot be their own parent", context={"entity_id": a}
                )
            raise InvariantViolation(
                "self_link", "A person cannot be linked to themselves", context={"entity_id": a}
            )

        topology = self._topology if kind == RelationshipKind.PARENT else nullcontext()
        async with topology, self._locks.hold(a, b):
            person_a = await self._require_person(a)
            person_b = await self._require_person(b)
            self._check_mirror(person_a, person_b)

            context = {"kind": kind.value, "a": a, "b": b}

            if kind == RelationshipKind.PARENT:
                if b in person_a.children_ids:
                    raise InvariantViolation("edge_exists", f"{a} is already a parent of {b}", context)
                if await self._is_ancestor(b, a):
                    raise CycleDetected(
                        f"{b} is an ancestor of {a}; {a} cannot become parent of {b}", context
                    )
                if b in person_a.spouse_ids:
                    raise InvariantViolation(
                        "conflicting_edge", f"{a} and {b} are spouses", context
                    )
                staged_a = self._revise(person_a, {"children_ids": person_a.children_ids + [b]})
                staged_b = self._revise(person_b, {"parent_ids": person_b.parent_ids + [a]})
            else:
                if b in person_a.spouse_ids:
                    raise InvariantViolation("edge_exists", f"{a} and {b} are already spouses", context)
                if b in person_a.parent_ids or b in person_a.children_ids:
                    raise InvariantViolation(
                        "conflicting_edge", f"{a} and {b} are parent and child", context
                    )
                staged_a = self._revise(person_a, {"spouse_ids": person_a.spouse_ids + [b]})
                staged_b = self._revise(person_b, {"spouse_ids": person_b.spouse_ids + [a]})

            await self.backend.save(persons=[staged_a, staged_b])
            logger.bind(**context).info(f"Linked {kind.value}: {a} -> {b}")

            await self._publish("link_relationship", actor_id, [staged_a, staged_b])
            return staged_a, staged_b

    async def unlink_relationship(
        self, kind: RelationshipKind | str, a: str, b: str, actor_id: str = "system"
    ) -> tuple[Person, Person]:
        """
        Remove a relationship edge and its mirror in one transaction.

        Raises:
            InvariantViolation: unknown_entity, tombstoned, edge_missing,
                mirrored_edges
        """
        kind, a, b = self._normalize(kind, a, b)

        async with self._locks.hold(a, b):
            person_a = await self._require_person(a)
            person_b = await self._require_person(b)
            self._check_mirror(person_a, person_b)

            context = {"kind": kind.value, "a": a, "b": b}

            if kind == RelationshipKind.PARENT:
                if b not in person_a.children_ids:
                    raise InvariantViolation("edge_missing", f"{a} is not a parent of {b}", context)
                staged_a = self._revise(
                    person_a, {"children_ids": [x for x in person_a.children_ids if x != b]}
                )
                staged_b = self._revise(
                    person_b, {"parent_ids": [x for x in person_b.parent_ids if x != a]}
                )
            else:
                if b not in person_a.spouse_ids:
                    raise InvariantViolation("edge_missing", f"{a} and {b} are not spouses", context)
                staged_a = self._revise(
                    person_a, {"spouse_ids": [x for x in person_a.spouse_ids if x != b]}
                )
                staged_b = self._revise(
                    person_b, {"spouse_ids": [x for x in person_b.spouse_ids if x != a]}
                )

            await self.backend.save(persons=[staged_a, staged_b])
            logger.bind(**context).info(f"Unlinked {kind.value}: {a} -> {b}")

            await self._publish("unlink_relationship", actor_id, [staged_a, staged_b])
            return staged_a, staged_b

    # ═══════════════════════════════════════════════════════════
    # MEMORY COMMANDS
    # ═══════════════════════════════════════════════════════════

    async def create_memory(self, memory: Memory, actor_id: str = "system") -> Memory:
        """
        Add a new memory.

        Raises:
            InvariantViolation: duplicate_id, unknown_person, tombstoned,
                dangling_content
        """
        async with self._locks.hold(memory.id, *memory.person_ids):
            await self._require_unused_id(memory.id)
            if memory.tombstoned:
                raise InvariantViolation(
                    "tombstoned",
                    "Cannot create a tombstoned memory",
                    context={"entity_id": memory.id},
                )
            await self._require_live_persons(memory)
            await self._require_content(memory)

            staged = memory.model_copy(update={"version": 1})
            await self.backend.save(memories=[staged])
            logger.bind(entity_id=staged.id, person_ids=staged.person_ids).info(
                f"Memory created: {staged.id}"
            )

            await self._publish("create_memory", actor_id, [staged])
            return staged

    async def update_memory(
        self, memory_id: str, changes: dict[str, Any], actor_id: str = "system"
    ) -> Memory:
        """
        Apply field changes to a memory.

        Raises:
            InvariantViolation: immutable_field, unknown_entity, tombstoned,
                unknown_person, dangling_content
            ValidationError: If the changed fields fail schema validation
        """
        self._reject_immutable(memory_id, changes, _MEMORY_IMMUTABLE)
        new_persons = [str(pid) for pid in changes.get("person_ids") or []]

        async with self._locks.hold(memory_id, *new_persons):
            current = await self._require_memory(memory_id)
            staged = self._revise(current, changes)
            if self._same_content(current, staged):
                return current

            await self._require_live_persons(staged)
            await self._require_content(staged)
            await self.backend.save(memories=[staged])
            logger.bind(entity_id=memory_id, changed=sorted(changes)).info(
                f"Memory updated: {memory_id} v{staged.version}"
            )

            await self._publish("update_memory", actor_id, [staged])
            return staged

    # ═══════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════

    async def tombstone(self, entity_id: str, actor_id: str = "system") -> Person | Memory:
        """
        Logically delete a person or memory.

        Edges are kept so historical snapshots stay consistent; the entity
        just stops accepting mutations and disappears from listings.

        Raises:
            InvariantViolation: unknown_entity, tombstoned
        """
        async with self._locks.hold(entity_id):
            current = await self.backend.get_person(entity_id)
            if current is None:
                current = await self.backend.get_memory(entity_id)
            if current is None:
                raise InvariantViolation(
                    "unknown_entity", f"No entity {entity_id}", context={"entity_id": entity_id}
                )
            self._require_not_tombstoned(current)

            staged = self._revise(current, {"tombstoned": True})
            if isinstance(staged, Person):
                await self.backend.save(persons=[staged])
            else:
                await self.backend.save(memories=[staged])
            logger.bind(entity_id=entity_id).info(f"Entity tombstoned: {entity_id}")

            await self._publish("tombstone", actor_id, [staged])
            return staged

    async def republish(self, entity_id: str, actor_id: str = "system") -> Person | Memory:
        """
        Publish a CommitEvent for the current version without changing it.

        Used to re-drive listeners whose earlier delivery failed, e.g. when
        an anchor was left pending.

        Raises:
            NotFoundError: If the entity does not exist
        """
        async with self._locks.hold(entity_id):
            current = await self.backend.get_person(entity_id)
            if current is None:
                current = await self.backend.get_memory(entity_id)
            if current is None:
                raise NotFoundError(f"No entity {entity_id}", context={"entity_id": entity_id})

            await self._publish("republish", actor_id, [current])
            return current

    # ═══════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════

    async def get_person(self, person_id: str) -> Person | None:
        async with self._locks.hold(person_id):
            return await self.backend.get_person(person_id)

    async def get_memory(self, memory_id: str) -> Memory | None:
        async with self._locks.hold(memory_id):
            return await self.backend.get_memory(memory_id)

    async def get_entity(self, entity_id: str) -> Person | Memory | None:
        async with self._locks.hold(entity_id):
            entity = await self.backend.get_person(entity_id)
            if entity is None:
                entity = await self.backend.get_memory(entity_id)
            return entity

    async def list_persons(self, include_tombstoned: bool = False) -> list[Person]:
        return await self.backend.list_persons(include_tombstoned=include_tombstoned)

    async def list_memories(self, include_tombstoned: bool = False) -> list[Memory]:
        return await self.backend.list_memories(include_tombstoned=include_tombstoned)

    async def memories_of(self, person_id: str, include_tombstoned: bool = False) -> list[Memory]:
        """Memories associated with a person."""
        return await self.backend.list_memories(
            person_id=person_id, include_tombstoned=include_tombstoned
        )

    async def ancestors_of(self, person_id: str, max_depth: int | None = None) -> list[Person]:
        """
        Ancestors up to ``max_depth`` generations, nearest generation first.

        Raises:
            NotFoundError: If the person doesn't exist
        """
        return await self._lineage(person_id, "parent_ids", max_depth)

    async def descendants_of(self, person_id: str, max_depth: int | None = None) -> list[Person]:
        """
        Descendants up to ``max_depth`` generations, nearest generation first.

        Raises:
            NotFoundError: If the person doesn't exist
        """
        return await self._lineage(person_id, "children_ids", max_depth)

    async def siblings_of(self, person_id: str) -> list[Person]:
        """Persons sharing at least one parent with ``person_id``."""
        person = await self.get_person(person_id)
        if person is None:
            raise NotFoundError(f"Person not found: {person_id}", {"entity_id": person_id})

        sibling_ids: set[str] = set()
        for parent_id in person.parent_ids:
            parent = await self.backend.get_person(parent_id)
            if parent is not None:
                sibling_ids.update(parent.children_ids)
        sibling_ids.discard(person_id)

        siblings = [await self.backend.get_person(sid) for sid in sorted(sibling_ids)]
        return [s for s in siblings if s is not None]

    async def is_ancestor(self, ancestor_id: str, person_id: str) -> bool:
        """
        Check whether ``ancestor_id`` is reachable upward from ``person_id``.

        Raises:
            DepthExceeded: If the walk exceeds max_traversal_depth generations
        """
        return await self._is_ancestor(ancestor_id, person_id)

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    async def _is_ancestor(self, ancestor_id: str, person_id: str) -> bool:
        # Generation-by-generation walk up parent_ids; no transitive closure is stored.
        frontier = [person_id]
        seen = {person_id}

        for _ in range(self.max_traversal_depth):
            parents: list[str] = []
            for current_id in frontier:
                current = await self.backend.get_person(current_id)
                if current is None:
                    continue
                for parent_id in current.parent_ids:
                    if parent_id == ancestor_id:
                        return True
                    if parent_id not in seen:
                        seen.add(parent_id)
                        parents.append(parent_id)
            if not parents:
                return False
            frontier = parents

        # The bound is reached; fail closed only if a further generation exists
        for current_id in frontier:
            current = await self.backend.get_person(current_id)
            if current is not None and any(p not in seen for p in current.parent_ids):
                raise DepthExceeded(
                    f"Ancestry of {person_id} exceeds {self.max_traversal_depth} generations",
                    context={"entity_id": person_id, "max_depth": self.max_traversal_depth},
                )
        return False

    async def _lineage(self, person_id: str, edge: str, max_depth: int | None) -> list[Person]:
        if await self.get_person(person_id) is None:
            raise NotFoundError(f"Person not found: {person_id}", {"entity_id": person_id})

        depth_limit = self.max_traversal_depth if max_depth is None else max_depth
        results: list[Person] = []
        frontier = [person_id]
        seen = {person_id}

        for _ in range(depth_limit):
            generation: list[Person] = []
            for current_id in frontier:
                current = await self.backend.get_person(current_id)
                if current is None:
                    continue
                for next_id in getattr(current, edge):
                    if next_id in seen:
                        continue
                    seen.add(next_id)
                    relative = await self.backend.get_person(next_id)
                    if relative is not None:
                        generation.append(relative)
            if not generation:
                break
            generation.sort(key=lambda p: p.id)
            results.extend(generation)
            frontier = [p.id for p in generation]

        return results

    async def _publish(
        self, command: str, actor_id: str, entities: list[Person | Memory]
    ) -> None:
        event = CommitEvent(command=command, actor_id=actor_id, entities=entities)
        for listener in self._listeners:
            await listener(event)

    def _normalize(
        self, kind: RelationshipKind | str, a: str, b: str
    ) -> tuple[RelationshipKind, str, str]:
        try:
            kind = RelationshipKind(kind)
        except ValueError as e:
            raise ValidationError(f"Unknown relationship kind: {kind}") from e
        if kind == RelationshipKind.CHILD:
            return RelationshipKind.PARENT, b, a
        return kind, a, b

    def _revise(self, entity: Person | Memory, changes: dict[str, Any]) -> Person | Memory:
        """Build the next version through full model validation."""
        data = entity.model_dump()
        data.update(changes)
        data["version"] = entity.version + 1
        try:
            return type(entity).model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid changes for {entity.id}",
                context={"entity_id": entity.id, "errors": e.errors(include_url=False)},
            ) from e

    @staticmethod
    def _same_content(current: Person | Memory, staged: Person | Memory) -> bool:
        return current.model_dump(exclude={"version"}) == staged.model_dump(exclude={"version"})

    @staticmethod
    def _reject_immutable(entity_id: str, changes: dict[str, Any], immutable: frozenset) -> None:
        blocked = sorted(immutable.intersection(changes))
        if blocked:
            raise InvariantViolation(
                "immutable_field",
                f"Fields cannot be changed by update: {', '.join(blocked)}",
                context={"entity_id": entity_id, "fields": blocked},
            )

    @staticmethod
    def _require_not_tombstoned(entity: Person | Memory) -> None:
        if entity.tombstoned:
            raise InvariantViolation(
                "tombstoned", f"{entity.id} is tombstoned", context={"entity_id": entity.id}
            )

    async def _require_unused_id(self, entity_id: str) -> None:
        existing = await self.backend.get_person(entity_id) or await self.backend.get_memory(
            entity_id
        )
        if existing is not None:
            raise InvariantViolation(
                "duplicate_id", f"Entity already exists: {entity_id}", {"entity_id": entity_id}
            )

    async def _require_person(self, person_id: str) -> Person:
        person = await self.backend.get_person(person_id)
        if person is None:
            raise InvariantViolation(
                "unknown_entity", f"No person {person_id}", context={"entity_id": person_id}
            )
        self._require_not_tombstoned(person)
        return person

    async def _require_memory(self, memory_id: str) -> Memory:
        memory = await self.backend.get_memory(memory_id)
        if memory is None:
            raise InvariantViolation(
                "unknown_entity", f"No memory {memory_id}", context={"entity_id": memory_id}
            )
        self._require_not_tombstoned(memory)
        return memory

    async def _require_live_persons(self, memory: Memory) -> None:
        for person_id in memory.person_ids:
            person = await self.backend.get_person(person_id)
            if person is None:
                raise InvariantViolation(
                    "unknown_person",
                    f"Memory {memory.id} references unknown person {person_id}",
                    context={"entity_id": memory.id, "person_id": person_id},
                )
            if person.tombstoned:
                raise InvariantViolation(
                    "tombstoned",
                    f"Memory {memory.id} references tombstoned person {person_id}",
                    context={"entity_id": memory.id, "person_id": person_id},
                )

    async def _require_content(self, entity: Person | Memory) -> None:
        for content_id in entity.content_references():
            known = self.content_index is not None and await self.content_index.has_content(
                content_id
            )
            if not known:
                raise InvariantViolation(
                    "dangling_content",
                    f"{entity.id} references content without an archive record",
                    context={"entity_id": entity.id, "content_id": content_id},
                )

    @staticmethod
    def _check_mirror(person_a: Person, person_b: Person) -> None:
        a, b = person_a.id, person_b.id
        consistent = (
            (b in person_a.children_ids) == (a in person_b.parent_ids)
            and (b in person_a.parent_ids) == (a in person_b.children_ids)
            and (b in person_a.spouse_ids) == (a in person_b.spouse_ids)
        )
        if not consistent:
            raise InvariantViolation(
                "mirrored_edges",
                f"Stored edges between {a} and {b} are not mirrored",
                context={"a": a, "b": b},
            )
