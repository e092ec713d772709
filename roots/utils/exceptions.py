"""
Exception hierarchy for the Roots archive.

Every error carries a message and a context dictionary. Context always
includes the identifiers (entity_id, content_id) a caller needs to retry
or report the failure. All exceptions inherit from RootsError.
"""


class RootsError(Exception):
    """
    Base exception for all archive errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize archive error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(RootsError):
    """
    Validation errors.
    Raised when input fields fail schema validation.
    """

    pass


class NotFoundError(RootsError):
    """
    Resource not found errors.
    Raised when a requested person, memory, receipt or blob doesn't exist.
    """

    pass


class ConfigurationError(RootsError):
    """
    Configuration errors.
    Raised when configuration is invalid or names an unknown backend.
    """

    pass


class GraphStoreError(RootsError):
    """
    Graph backend errors.
    Raised when the underlying graph persistence fails.
    """

    pass


class ChangeLogError(RootsError):
    """
    Change log errors.
    Raised when an append would break the per-entity history chain
    or when the log backend fails.
    """

    pass


class InvariantViolation(RootsError):
    """
    A graph command was rejected before any mutation was applied.

    The ``rule`` attribute names the violated invariant.
    """

    def __init__(self, rule: str, message: str, context: dict | None = None):
        super().__init__(message, context)
        self.rule = rule


class CycleDetected(InvariantViolation):
    """Parent/child edge would make a person their own ancestor."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__("acyclic", message, context)


class DepthExceeded(InvariantViolation):
    """Ancestry walk exceeded the configured traversal bound (fails closed)."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__("max_depth", message, context)


class MalformedError(RootsError):
    """
    Snapshot decoding errors.
    Raised when bytes are not a canonical snapshot of a known schema version.
    """

    pass


class ArchiveError(RootsError):
    """Base exception for content store / ledger orchestration."""

    @property
    def entity_id(self) -> str | None:
        return self.context.get("entity_id")

    @property
    def content_id(self) -> str | None:
        return self.context.get("content_id")


class IntegrityViolation(ArchiveError):
    """
    Fetched content does not match its anchor.
    Always propagated to the reader, never downgraded.
    """

    pass


class SuspiciousOrdering(ArchiveError):
    """
    A receipt is timestamped before the previous receipt of the same entity.
    Non-fatal: reported to operators, reads proceed.
    """

    pass


class StoreUnavailable(ArchiveError):
    """
    Content store I/O failed or timed out.
    Transient; the caller retries with backoff.
    """

    pass


class LedgerUnavailable(ArchiveError):
    """
    Ledger I/O failed or timed out.
    Transient; the caller retries with backoff.
    """

    pass


class AnchorPending(ArchiveError):
    """
    Content was pushed but the ledger anchor did not complete.

    Retrying the commit is safe: the content record already exists so
    the bytes are not pushed again.
    """

    pass
