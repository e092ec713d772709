"""In-process graph backend."""

from roots.core.graph_store.base import GraphBackend
from roots.models.memory import Memory
from roots.models.person import Person


class InMemoryGraphBackend(GraphBackend):
    """
    Dictionary-backed graph backend.

    Entities are frozen models, so handing them out directly is safe.
    ``save`` contains no await points, which makes each batch atomic
    with respect to other coroutines.
    """

    def __init__(self):
        self.persons: dict[str, Person] = {}
        self.memories: dict[str, Memory] = {}

    async def initialize(self) -> None:
        pass

    async def get_person(self, person_id: str) -> Person | None:
        return self.persons.get(person_id)

    async def get_memory(self, memory_id: str) -> Memory | None:
        return self.memories.get(memory_id)

    async def list_persons(self, include_tombstoned: bool = False) -> list[Person]:
        return [
            person
            for _, person in sorted(self.persons.items())
            if include_tombstoned or not person.tombstoned
        ]

    async def list_memories(
        self, person_id: str | None = None, include_tombstoned: bool = False
    ) -> list[Memory]:
        results = []
        for _, memory in sorted(self.memories.items()):
            if memory.tombstoned and not include_tombstoned:
                continue
            if person_id is not None and person_id not in memory.person_ids:
                continue
            results.append(memory)
        return results

    async def save(
        self,
        persons: list[Person] | None = None,
        memories: list[Memory] | None = None,
    ) -> None:
        for person in persons or []:
            self.persons[person.id] = person
        for memory in memories or []:
            self.memories[memory.id] = memory

    async def close(self) -> None:
        pass
