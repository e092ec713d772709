"""
Family Archive - Unified interface over the family graph and the archive.

Brings together:
- FamilyGraph: transactional person/memory commands and ancestry queries
- ArchiveService: content store pushes, ledger anchors and the change log
- IntegrityVerifier: verified reads of anchored snapshots

Every committed graph mutation is snapshotted and anchored through a
commit listener, while the graph's entity locks are held.
"""

from datetime import date
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from roots.config import Config
from roots.core.changelog.base import ChangeLog, ChangeLogView
from roots.core.content_store.base import ContentStore
from roots.core.factory import (
    ChangeLogFactory,
    ContentStoreFactory,
    GraphBackendFactory,
    LedgerFactory,
)
from roots.core.graph_store.base import GraphBackend
from roots.core.graph_store.family_graph import FamilyGraph
from roots.core.ledger.base import Ledger
from roots.models.archive import AnchorReceipt, AuditReport, ContentRecord, EntityKind
from roots.models.memory import Memory
from roots.models.person import Gender, Person
from roots.models.relationships import CommitEvent, RelationshipKind
from roots.services.archive_service import ArchiveService
from roots.utils.exceptions import AnchorPending, ValidationError
from roots.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


class FamilyArchive:
    """
    Unified family archive.

    Features:
    - Persons with mirrored parent/child/spouse relationships
    - Memories (stories, photos, documents) attached to persons
    - Every committed version snapshotted, pushed and anchored
    - Verified reads that detect tampering in the content store
    - Per-entity provenance history and audits
    """

    def __init__(
        self,
        graph_backend: GraphBackend,
        content_store: ContentStore,
        ledger: Ledger,
        changelog: ChangeLog,
        config: Config | None = None,
    ):
        """
        Initialize Family Archive.

        Args:
            graph_backend: Persistence for persons and memories
            content_store: Content-addressed blob store
            ledger: Anchoring ledger
            changelog: Append-only change log
            config: Configuration object (default: Config())
        """
        self.config = config or Config()

        self.archive = ArchiveService(
            content_store=content_store,
            ledger=ledger,
            changelog=changelog,
            store_timeout=self.config.content_store.timeout,
            ledger_timeout=self.config.ledger.timeout,
            pin_content=self.config.content_store.pin,
        )
        self.graph = FamilyGraph(
            backend=graph_backend,
            content_index=self.archive,
            max_traversal_depth=self.config.graph.max_traversal_depth,
        )
        self.graph.subscribe(self._archive_commit)

    @classmethod
    def from_config(cls, config: Config) -> "FamilyArchive":
        """Create an archive with backends chosen by configuration and configure logging."""
        setup_logging(
            level=config.logging.level,
            log_to_file=config.logging.log_to_file,
            log_dir=config.logging.log_dir,
            file_rotation=config.logging.file_rotation,
            file_retention=config.logging.file_retention,
            compression=config.logging.compression,
            serialize=config.logging.serialize,
        )
        logger.info(
            f"Configuration: graph={config.graph.backend}, "
            f"content={config.content_store.backend}, ledger={config.ledger.backend}, "
            f"changelog={config.changelog.backend}"
        )
        return cls(
            graph_backend=GraphBackendFactory.create(config.graph),
            content_store=ContentStoreFactory.create(config.content_store),
            ledger=LedgerFactory.create(config.ledger),
            changelog=ChangeLogFactory.create(config.changelog),
            config=config,
        )

    async def initialize(self) -> None:
        """Initialize graph and archive backends."""
        logger.info("Initializing Family Archive")

        await self.graph.initialize()
        logger.info("Family graph initialized")

        await self.archive.initialize()
        logger.info("Archive initialized")

        logger.info("Family Archive ready")

    # ═══════════════════════════════════════════════════════════
    # PERSONS
    # ═══════════════════════════════════════════════════════════

    async def add_person(
        self,
        name: str,
        actor_id: str = "system",
        birth_date: date | None = None,
        death_date: date | None = None,
        gender: Gender = Gender.UNKNOWN,
        biography: str | None = None,
        profile_content_id: str | None = None,
        extensions: dict[str, str] | None = None,
        person_id: str | None = None,
    ) -> Person:
        """
        Create a person and anchor the first snapshot.

        Raises:
            ValidationError: If fields are invalid
            InvariantViolation: If the id is taken or the profile content is unknown
            AnchorPending / StoreUnavailable: If archiving did not complete
        """
        fields: dict[str, Any] = {
            "name": name,
            "birth_date": birth_date,
            "death_date": death_date,
            "gender": gender,
            "biography": biography,
            "profile_content_id": profile_content_id,
            "extensions": extensions or {},
        }
        if person_id is not None:
            fields["id"] = person_id

        person = _build(Person, fields)
        return await self.graph.create_person(person, actor_id=actor_id)

    async def update_person(
        self, person_id: str, changes: dict[str, Any], actor_id: str = "system"
    ) -> Person:
        """Apply field changes to a person (relationships change via link/unlink)."""
        return await self.graph.update_person(person_id, changes, actor_id=actor_id)

    async def link(
        self, kind: RelationshipKind | str, a: str, b: str, actor_id: str = "system"
    ) -> tuple[Person, Person]:
        """
        Link two persons.

        ``parent`` makes ``a`` a parent of ``b``; ``child`` makes ``a`` a
        child of ``b``; ``spouse`` is symmetric.
        """
        return await self.graph.link_relationship(kind, a, b, actor_id=actor_id)

    async def unlink(
        self, kind: RelationshipKind | str, a: str, b: str, actor_id: str = "system"
    ) -> tuple[Person, Person]:
        return await self.graph.unlink_relationship(kind, a, b, actor_id=actor_id)

    # ═══════════════════════════════════════════════════════════
    # MEMORIES
    # ═══════════════════════════════════════════════════════════

    async def add_memory(
        self,
        person_ids: list[str],
        title: str,
        created_by: str,
        body: str = "",
        occurred_on: date | None = None,
        media_content_ids: list[str] | None = None,
        tags: list[str] | None = None,
        extensions: dict[str, str] | None = None,
    ) -> Memory:
        """
        Create a memory about one or more persons and anchor it.

        ``created_by`` is also recorded as the change log actor.
        """
        memory = _build(
            Memory,
            {
                "person_ids": person_ids,
                "title": title,
                "body": body,
                "occurred_on": occurred_on,
                "media_content_ids": media_content_ids or [],
                "tags": tags or [],
                "created_by": created_by,
                "extensions": extensions or {},
            },
        )
        return await self.graph.create_memory(memory, actor_id=created_by)

    async def update_memory(
        self, memory_id: str, changes: dict[str, Any], actor_id: str = "system"
    ) -> Memory:
        return await self.graph.update_memory(memory_id, changes, actor_id=actor_id)

    async def upload_media(
        self, data: bytes, media_type: str = "application/octet-stream"
    ) -> ContentRecord:
        """Push a photo or document; reference the returned content id from entities."""
        return await self.archive.put_content(data, media_type)

    async def download_media(self, content_id: str) -> bytes:
        """Fetch a media blob, verified against its content id."""
        return await self.archive.get_content(content_id)

    async def tombstone(self, entity_id: str, actor_id: str = "system") -> Person | Memory:
        return await self.graph.tombstone(entity_id, actor_id=actor_id)

    # ═══════════════════════════════════════════════════════════
    # PROVENANCE
    # ═══════════════════════════════════════════════════════════

    async def read_verified(self, entity_id: str) -> Person | Memory:
        """Latest anchored snapshot of an entity, verified against the ledger."""
        return await self.archive.read_verified(entity_id)

    def history_of(self, entity_id: str) -> ChangeLogView:
        """Change log history of an entity, oldest first."""
        return self.archive.history_of(entity_id)

    async def persons_created_by(self, actor_id: str) -> list[str]:
        """Ids of persons first archived by ``actor_id``."""
        return await self.archive.entities_created_by(actor_id, EntityKind.PERSON)

    async def memories_created_by(self, actor_id: str) -> list[str]:
        return await self.archive.entities_created_by(actor_id, EntityKind.MEMORY)

    async def audit(self, entity_id: str) -> AuditReport:
        return await self.archive.audit(entity_id)

    async def commit_pending(self, actor_id: str = "system") -> list[AnchorReceipt]:
        """
        Anchor every entity whose current version has no anchor yet.

        Re-drives commits left pending by store or ledger outages. Entities
        already anchored are skipped without touching the store or ledger.

        Returns:
            Receipts for the entities anchored by this call
        """
        persons = await self.graph.list_persons(include_tombstoned=True)
        memories = await self.graph.list_memories(include_tombstoned=True)

        receipts = []
        for entity in [*persons, *memories]:
            if self.archive.is_anchored(entity):
                continue
            before = self.archive.latest_receipt(entity.id)
            await self.graph.republish(entity.id, actor_id=actor_id)
            receipt = self.archive.latest_receipt(entity.id)
            if receipt is not None and receipt != before:
                receipts.append(receipt)

        logger.bind(anchored=len(receipts)).info(
            f"Committed {len(receipts)} pending entities"
        )
        return receipts

    async def get_statistics(self) -> dict[str, Any]:
        """
        Get archive statistics.

        Returns:
            Statistics dictionary
        """
        persons = await self.graph.list_persons(include_tombstoned=True)
        memories = await self.graph.list_memories(include_tombstoned=True)
        entities = [*persons, *memories]
        unanchored = sum(1 for entity in entities if not self.archive.is_anchored(entity))

        return {
            "persons": {
                "live": sum(1 for p in persons if not p.tombstoned),
                "tombstoned": sum(1 for p in persons if p.tombstoned),
            },
            "memories": {
                "live": sum(1 for m in memories if not m.tombstoned),
                "tombstoned": sum(1 for m in memories if m.tombstoned),
            },
            "archive": {
                "change_log_entries": await self.archive.changelog.last_sequence(),
                "unanchored": unanchored,
                "ordering_warnings": len(self.archive.ordering_warnings),
            },
        }

    # LIFECYCLE MANAGEMENT

    async def close(self) -> None:
        """Close all connections."""
        logger.info("Shutting down Family Archive")
        await self.graph.close()
        await self.archive.close()
        logger.info("Family Archive shutdown complete")

    # HELPERS

    async def _archive_commit(self, event: CommitEvent) -> None:
        for entity in event.entities:
            try:
                await self.archive.commit(entity, actor_id=event.actor_id)
            except AnchorPending as e:
                logger.bind(**e.context, command=event.command).warning(
                    f"{event.command} committed to the graph; anchor pending for {entity.id}"
                )
                raise


def _build(model: type[Person] | type[Memory], fields: dict[str, Any]) -> Person | Memory:
    try:
        return model.model_validate(fields)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {model.__name__.lower()} fields",
            context={"errors": e.errors(include_url=False)},
        ) from e
