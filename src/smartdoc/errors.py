"""Error taxonomy shared by the ingestion and generation pipelines.

Collaborator faults never cross a pipeline boundary as raw exceptions;
the client adapters wrap them in :class:`DependencyError` and the
pipelines report everything else as one of the classes below.
"""

from __future__ import annotations


class SmartDocError(Exception):
    """Base class for every error raised by the package."""


# -- bad input ----------------------------------------------------------------


class ValidationError(SmartDocError):
    """Input was rejected before any side effect happened."""


class EmptyContentError(ValidationError):
    """Text handed to the chunker is blank."""

    def __init__(self, message: str = "Cannot split blank text") -> None:
        super().__init__(message)


class EmptyPromptError(ValidationError):
    def __init__(self, message: str = "Prompt must not be empty") -> None:
        super().__init__(message)


class UnsupportedFormatError(ValidationError):
    def __init__(self, mime_type: str, filename: str) -> None:
        super().__init__(
            f"Unsupported file type {mime_type!r} ({filename}). Supported: PDF (.pdf), Text (.txt), Markdown (.md)"
        )
        self.mime_type = mime_type
        self.filename = filename


class FileTooLargeError(ValidationError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"File size {size} bytes exceeds the {limit // (1024 * 1024)}MB limit")
        self.size = size
        self.limit = limit


class EmptyExtractionError(ValidationError):
    def __init__(self, filename: str) -> None:
        super().__init__(f"No content could be extracted from {filename!r}")
        self.filename = filename


# -- collaborators ------------------------------------------------------------


class DependencyError(SmartDocError):
    """An external service (embedding, vector index, completion) failed."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service} failed: {message}")
        self.service = service


class ConsistencyError(SmartDocError):
    """Vector deletion failed; the registry entry was kept."""

    def __init__(self, document_id: str, cause: Exception) -> None:
        super().__init__(f"Could not delete vectors for document {document_id}: {cause}")
        self.document_id = document_id


class NotFoundError(SmartDocError):
    """Unknown conversation or document id on a point lookup."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {key}")
        self.kind = kind
        self.key = key
