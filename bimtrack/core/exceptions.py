"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

BCF import taxonomy:
    BcfImportError
    ├── MalformedXmlError        fatal for one archive entry
    ├── ReconciliationError      fatal for one archive entry
    │   ├── MissingEntryError    viewpoint file absent from the archive
    │   └── CorruptEntryError    member fails CRC or decompression
    ├── WorkItemSyncFailure      recoverable, logged by the issue reader
    └── CommentSyncFailure       recoverable, logged by the issue reader

Usage:
    from bimtrack.core.exceptions import NotFoundError, MalformedXmlError

    raise NotFoundError(resource="Project", resource_id=42)
    raise MalformedXmlError("1f2e/markup.bcf", "mismatched tag: line 3")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Project", "BcfIssue").
        resource_id: The key that was looked up. Included in logs and messages.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidArchiveError(ValidationError):
    """The uploaded file is not a readable zip container."""


# ── BCF import ─────────────────────────────────────────────────────────────


class BcfImportError(Exception):
    """Base class for everything raised by the BCF import pipeline."""


class MalformedXmlError(BcfImportError):
    """Markup bytes are not well-formed XML.

    Args:
        source: Archive entry name the bytes came from, if known.
        reason: Parser message (line/column included by ElementTree).
    """

    def __init__(self, source: str | None, reason: str) -> None:
        self.source = source
        self.reason = reason
        where = f" in {source}" if source else ""
        super().__init__(f"Malformed BCF markup{where}: {reason}")


class ReconciliationError(BcfImportError):
    """An archive entry could not be merged into the issue graph."""

    def __init__(self, message: str, topic_uuid: str | None = None) -> None:
        self.topic_uuid = topic_uuid
        super().__init__(message)


class MissingEntryError(ReconciliationError):
    """A file referenced by the markup is not present in the archive."""

    def __init__(self, path: str, topic_uuid: str | None = None) -> None:
        self.path = path
        super().__init__(f"Archive entry not found: {path}", topic_uuid=topic_uuid)


class CorruptEntryError(ReconciliationError):
    """An archive member exists but its bytes cannot be decompressed or verified."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        head, sep, _ = path.partition("/")
        super().__init__(
            f"Corrupt archive entry {path}: {reason}",
            topic_uuid=head if sep and head else None,
        )


class _SyncFailure(BcfImportError):
    """Collaborator call reported failure; carries its error messages."""

    action = "synchronize"

    def __init__(self, topic_uuid: str, errors: list[str] | None = None) -> None:
        self.topic_uuid = topic_uuid
        self.errors = list(errors or [])
        super().__init__(
            f"Failed to {self.action} BCF {topic_uuid}: {'; '.join(self.errors)}"
        )


class WorkItemSyncFailure(_SyncFailure):
    action = "synchronize work package for"


class CommentSyncFailure(_SyncFailure):
    action = "create comment for"
