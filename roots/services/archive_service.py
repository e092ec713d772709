"""
Archive Service - Commits graph snapshots to the content store and ledger.

Handles:
- Push-then-anchor commits with a change log entry per anchored snapshot
- Verified reads (fetch, re-hash, compare against the ledger receipt)
- Content records for media blobs referenced by persons and memories
- Retry with backoff for transient content store failures
- Provenance audits cross-checking the change log with the ledger
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from roots.core.changelog.base import ChangeLog, ChangeLogView
from roots.core.codec import SNAPSHOT_MEDIA_TYPE, canonicalize, entity_kind, parse
from roots.core.content_store.base import ContentStore
from roots.core.graph_store.base import ContentIndex
from roots.core.hashing import identify, is_content_id
from roots.core.ledger.base import Ledger
from roots.models.archive import (
    AnchorGap,
    AnchorReceipt,
    AuditReport,
    ChangeLogEntry,
    ContentRecord,
    EntityKind,
)
from roots.models.memory import Memory
from roots.models.person import Person
from roots.services.integrity_verifier import IntegrityVerifier
from roots.utils.exceptions import (
    AnchorPending,
    IntegrityViolation,
    LedgerUnavailable,
    NotFoundError,
    RootsError,
    StoreUnavailable,
    SuspiciousOrdering,
)
from roots.utils.locks import KeyedLock
from roots.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ArchiveService(ContentIndex):
    """
    Orchestrates content store, ledger and change log.

    Commit order is push, pin, anchor, append. A failure after the push
    leaves a content record behind, so a retried commit anchors without
    pushing the bytes again. Commits for one entity are serialized;
    commits for different entities run concurrently.

    ``_latest`` and ``_content`` are caches of the change log and are
    rebuilt from it on ``initialize``.
    """

    def __init__(
        self,
        content_store: ContentStore,
        ledger: Ledger,
        changelog: ChangeLog,
        verifier: IntegrityVerifier | None = None,
        store_timeout: float = 30.0,
        ledger_timeout: float = 60.0,
        pin_content: bool = True,
        max_retries: int = 3,
        retry_delay: float = 0.5,
    ):
        """
        Initialize archive service.

        Args:
            content_store: Content-addressed blob store
            ledger: Anchoring ledger
            changelog: Append-only change log
            verifier: Integrity verifier (default: IntegrityVerifier())
            store_timeout: Seconds allowed per content store call
            ledger_timeout: Seconds allowed per ledger call
            pin_content: Pin every pushed blob
            max_retries: Attempts for transient content store failures
            retry_delay: Base delay between attempts in seconds
        """
        self.content_store = content_store
        self.ledger = ledger
        self.changelog = changelog
        self.verifier = verifier or IntegrityVerifier()
        self.store_timeout = store_timeout
        self.ledger_timeout = ledger_timeout
        self.pin_content = pin_content
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self.ordering_warnings: list[SuspiciousOrdering] = []

        self._locks = KeyedLock()
        self._latest: dict[str, AnchorReceipt] = {}
        self._content: dict[str, ContentRecord] = {}

    async def initialize(self) -> None:
        """Initialize backends and rebuild caches from the change log."""
        await self.content_store.initialize()
        await self.ledger.initialize()
        await self.changelog.initialize()
        await self.rebuild_indexes()

    async def close(self) -> None:
        await self.content_store.close()
        await self.ledger.close()
        await self.changelog.close()

    async def rebuild_indexes(self) -> int:
        """
        Replay the change log into the receipt and content caches.

        Content records for blobs pushed but never anchored are kept.

        Returns:
            Number of entries replayed
        """
        latest: dict[str, AnchorReceipt] = {}
        count = 0
        async for entry in self.changelog.entries():
            self._content.setdefault(entry.content_id, entry.to_content_record())
            latest[entry.entity_id] = entry.to_receipt()
            count += 1

        self._latest = latest
        logger.bind(entries=count, entities=len(latest)).info(
            f"Archive indexes rebuilt from {count} change log entries"
        )
        return count

    # ═══════════════════════════════════════════════════════════
    # COMMIT
    # ═══════════════════════════════════════════════════════════

    async def commit(self, entity: Person | Memory, actor_id: str = "system") -> AnchorReceipt:
        """
        Snapshot, push and anchor the current version of an entity.

        Committing content identical to the latest anchor returns the
        existing receipt without touching the store or the ledger.

        Args:
            entity: Person or Memory to archive
            actor_id: Who caused the change

        Returns:
            AnchorReceipt for the entity's current content

        Raises:
            StoreUnavailable: If the push failed (nothing was anchored)
            AnchorPending: If the push succeeded but anchoring did not complete
            IntegrityViolation: If the ledger answered with a foreign receipt
            ChangeLogError: If the anchored entry could not be logged
        """
        kind = entity_kind(entity)
        data = canonicalize(entity)
        content_id = identify(data)
        context = {"entity_id": entity.id, "content_id": content_id}

        async with self._locks.hold(entity.id):
            latest = self._latest.get(entity.id)
            if latest is not None and latest.content_id == content_id:
                logger.bind(**context).debug(f"Commit of {entity.id} is unchanged, skipping")
                return latest

            record = await self._ensure_stored(data, content_id, SNAPSHOT_MEDIA_TYPE, context)
            receipt = await self._anchor(entity, kind, content_id, context)

            warning = self.verifier.check_ordering(latest, receipt)
            if warning is not None:
                self._report_ordering(warning)

            await self.changelog.append(
                ChangeLogEntry(
                    entity_id=entity.id,
                    entity_kind=kind,
                    content_id=content_id,
                    timestamp=receipt.anchored_at,
                    actor_id=actor_id,
                    previous_content_id=latest.content_id if latest else None,
                    tx_ref=receipt.tx_ref,
                    location=record.location,
                    size=record.size,
                    media_type=record.media_type,
                )
            )
            self._latest[entity.id] = receipt

            logger.bind(**context, tx_ref=receipt.tx_ref, actor_id=actor_id).info(
                f"Committed {kind.value} {entity.id}"
            )
            return receipt

    async def put_content(
        self, data: bytes, media_type: str = "application/octet-stream"
    ) -> ContentRecord:
        """
        Push a media blob and record it.

        The returned content id may then be referenced by persons and
        memories. Pushing the same bytes twice returns the first record.

        Raises:
            StoreUnavailable: If the store cannot be reached
        """
        content_id = identify(data)
        context = {"content_id": content_id, "media_type": media_type}
        async with self._locks.hold(content_id):
            record = await self._ensure_stored(data, content_id, media_type, context)

        logger.bind(**context, size=record.size).info(f"Content stored: {content_id}")
        return record

    # ═══════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════

    async def read_verified(self, entity_id: str) -> Person | Memory:
        """
        Fetch the latest anchored snapshot of an entity and verify it.

        Raises:
            NotFoundError: If the entity was never anchored
            IntegrityViolation: If the fetched bytes do not match the receipt
            MalformedError: If verified bytes are not a readable snapshot
            StoreUnavailable / LedgerUnavailable: On backend failures
        """
        context = {"entity_id": entity_id}
        async with self._locks.hold(entity_id):
            receipt = await self._lookup(entity_id, context)
            if receipt is None:
                raise NotFoundError(f"Entity {entity_id} has never been anchored", context=context)

            context["content_id"] = receipt.content_id
            data = await self._fetch(self._location_for(receipt.content_id, context), context)
            previous = self._latest.get(entity_id)

        result = self.verifier.verify(
            receipt,
            data,
            expected_entity_id=entity_id,
            previous=previous,
        )
        if result.ordering_warning:
            self._report_ordering(
                SuspiciousOrdering(result.ordering_warning, context={**context})
            )
        if not result.verified:
            logger.bind(**context, computed_content_id=result.computed_content_id).error(
                f"Integrity violation reading {entity_id}: {result.reason}"
            )
            raise IntegrityViolation(
                f"Integrity violation for {entity_id}: {result.reason}",
                context={**context, "computed_content_id": result.computed_content_id},
            )

        entity = parse(data)
        if entity.id != entity_id:
            raise IntegrityViolation(
                f"Anchored snapshot for {entity_id} describes {entity.id}",
                context={**context, "snapshot_entity_id": entity.id},
            )

        logger.bind(**context).debug(f"Verified read of {entity_id}")
        return entity

    async def get_content(self, content_id: str) -> bytes:
        """
        Fetch a recorded blob and verify it hashes to its content id.

        Raises:
            NotFoundError: If no record exists for the content id
            IntegrityViolation: If the store returned different bytes
        """
        record = self._content.get(content_id)
        if record is None:
            raise NotFoundError(
                f"No content record for {content_id}", context={"content_id": content_id}
            )

        context = {"content_id": content_id}
        data = await self._fetch(record.location, context)
        computed = identify(data)
        if computed != content_id:
            logger.bind(**context, computed_content_id=computed).error(
                f"Integrity violation fetching {content_id}"
            )
            raise IntegrityViolation(
                f"Stored blob does not hash to {content_id}",
                context={**context, "computed_content_id": computed},
            )
        return data

    async def has_content(self, content_id: str) -> bool:
        return content_id in self._content

    def content_record(self, content_id: str) -> ContentRecord | None:
        return self._content.get(content_id)

    def latest_receipt(self, entity_id: str) -> AnchorReceipt | None:
        """Latest receipt this archive obtained for an entity."""
        return self._latest.get(entity_id)

    def is_anchored(self, entity: Person | Memory) -> bool:
        """Whether the entity's current content is its latest anchor."""
        latest = self._latest.get(entity.id)
        return latest is not None and latest.content_id == identify(canonicalize(entity))

    def history_of(self, entity_id: str) -> ChangeLogView:
        """Change log history of an entity, oldest first."""
        return self.changelog.history_of(entity_id)

    async def entities_created_by(
        self, actor_id: str, kind: EntityKind | None = None
    ) -> list[str]:
        """
        Ids of entities whose first anchored version was committed by ``actor_id``.

        Ordered by first anchor. Later edits by other actors do not change
        an entity's creator.
        """
        creators: dict[str, ChangeLogEntry] = {}
        async for entry in self.changelog.entries():
            creators.setdefault(entry.entity_id, entry)

        return [
            entity_id
            for entity_id, first in creators.items()
            if first.actor_id == actor_id and (kind is None or first.entity_kind == kind)
        ]

    async def audit(self, entity_id: str) -> AuditReport:
        """
        Cross-check an entity's change log history against the ledger.

        Reports entries without a matching receipt (and the reverse),
        entries whose previous_content_id does not point at their
        predecessor, and receipts timestamped before their predecessor.
        """
        entries = await self.changelog.history_of(entity_id).to_list()
        receipts = await self._ledger_call(
            self.ledger.history(entity_id), "history", {"entity_id": entity_id}
        )

        anchored = {r.tx_ref for r in receipts}
        logged = {e.tx_ref for e in entries}
        gaps = [
            AnchorGap(kind="unanchored_entry", content_id=e.content_id, tx_ref=e.tx_ref)
            for e in entries
            if e.tx_ref not in anchored
        ]
        gaps.extend(
            AnchorGap(kind="unlogged_receipt", content_id=r.content_id, tx_ref=r.tx_ref)
            for r in receipts
            if r.tx_ref not in logged
        )

        broken_links = []
        previous_content_id = None
        for entry in entries:
            if entry.previous_content_id != previous_content_id:
                broken_links.append(entry.sequence)
            previous_content_id = entry.content_id

        ordering_warnings = []
        for previous, current in zip(receipts, receipts[1:]):
            warning = self.verifier.check_ordering(previous, current)
            if warning is not None:
                ordering_warnings.append(warning.message)

        report = AuditReport(
            entity_id=entity_id,
            entries=entries,
            receipts=receipts,
            gaps=gaps,
            broken_links=broken_links,
            ordering_warnings=ordering_warnings,
        )
        if not report.is_clean:
            logger.bind(
                entity_id=entity_id,
                gaps=len(gaps),
                broken_links=len(broken_links),
                ordering_warnings=len(ordering_warnings),
            ).warning(f"Audit of {entity_id} found problems")
        return report

    # ═══════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════

    async def _ensure_stored(
        self, data: bytes, content_id: str, media_type: str, context: dict
    ) -> ContentRecord:
        record = self._content.get(content_id)
        if record is not None:
            logger.bind(**context).debug(f"Content {content_id} already stored")
            return record

        location = await self._with_retry(
            lambda: self.content_store.put(data), f"put({content_id})", context
        )
        if is_content_id(location) and location != content_id:
            raise IntegrityViolation(
                f"Content store returned {location} for {content_id}",
                context={**context, "location": location},
            )
        if self.pin_content:
            await self._with_retry(
                lambda: self.content_store.pin(location), f"pin({content_id})", context
            )

        record = ContentRecord(
            content_id=content_id, size=len(data), media_type=media_type, location=location
        )
        return self._content.setdefault(content_id, record)

    async def _anchor(
        self, entity: Person | Memory, kind: EntityKind, content_id: str, context: dict
    ) -> AnchorReceipt:
        entity_id = entity.id
        subject_id = entity.person_ids[0] if isinstance(entity, Memory) else None
        try:
            receipt = await asyncio.wait_for(
                self.ledger.anchor(entity_id, content_id, kind=kind, subject_id=subject_id),
                timeout=self.ledger_timeout,
            )
        except (LedgerUnavailable, TimeoutError) as e:
            logger.bind(**context, error_type=type(e).__name__).warning(
                f"Anchor of {entity_id} pending: {str(e) or 'timed out'}"
            )
            raise AnchorPending(
                f"Content for {entity_id} was stored but not anchored; retry the commit",
                context=context,
            ) from e

        if receipt.entity_id != entity_id or receipt.content_id != content_id:
            raise IntegrityViolation(
                f"Ledger returned a receipt for {receipt.entity_id}/{receipt.content_id}",
                context={**context, "tx_ref": receipt.tx_ref},
            )
        return receipt

    async def _lookup(self, entity_id: str, context: dict) -> AnchorReceipt | None:
        return await self._ledger_call(self.ledger.lookup(entity_id), "lookup", context)

    async def _ledger_call(self, call: Awaitable[T], name: str, context: dict) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.ledger_timeout)
        except TimeoutError as e:
            raise LedgerUnavailable(f"Ledger {name} timed out", context=context) from e
        except LedgerUnavailable as e:
            raise LedgerUnavailable(e.message, context={**e.context, **context}) from e

    async def _fetch(self, location: str, context: dict) -> bytes:
        return await self._with_retry(
            lambda: self.content_store.get(location), f"get({location})", context
        )

    def _location_for(self, content_id: str, context: dict) -> str:
        record = self._content.get(content_id)
        if record is not None:
            return record.location
        if self.content_store.content_id_tokens:
            return content_id
        raise NotFoundError(
            f"No content record for anchored content {content_id}; "
            "the store cannot locate it by content id",
            context=context,
        )

    async def _with_retry(
        self, operation: Callable[[], Awaitable[T]], operation_name: str, context: dict
    ) -> T:
        """
        Run a content store call with a timeout, retrying transient failures
        with exponential backoff.

        Raises:
            StoreUnavailable: If every attempt failed or timed out
        """
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                return await asyncio.wait_for(operation(), timeout=self.store_timeout)
            except (StoreUnavailable, TimeoutError) as e:
                last_error = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2**attempt)
                    logger.bind(
                        **context,
                        operation=operation_name,
                        attempt=attempt + 1,
                        error_type=type(e).__name__,
                    ).warning(
                        f"{operation_name} failed (attempt {attempt + 1}/{self.max_retries}): "
                        f"{str(e) or 'timed out'}. Retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
            except RootsError:
                raise
            except Exception as e:
                logger.bind(
                    **context, operation=operation_name, error_type=type(e).__name__
                ).error(
                    f"{operation_name} failed with unexpected error: {e}"
                )
                raise StoreUnavailable(
                    f"{operation_name} failed: {e}",
                    context={**context, "operation": operation_name},
                ) from e

        logger.bind(**context, operation=operation_name, error=str(last_error)).error(
            f"{operation_name} failed after {self.max_retries} attempts"
        )
        raise StoreUnavailable(
            f"{operation_name} failed after {self.max_retries} attempts: {str(last_error) or 'timed out'}",
            context={**context, "operation": operation_name, "max_retries": self.max_retries},
        ) from last_error

    def _report_ordering(self, warning: SuspiciousOrdering) -> None:
        self.ordering_warnings.append(warning)
        logger.bind(**warning.context).warning(warning.message)
