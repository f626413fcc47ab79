"""Document loaders — turn uploaded bytes into LangChain ``Document`` units.

One loader per supported kind. :func:`classify` picks the kind from the
declared MIME type, falling back to the filename extension; adding a
kind means adding a loader class and a row in the lookup tables, never
touching the dispatch.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import PurePath

from langchain_community.document_loaders.parsers.pdf import PyPDFParser
from langchain_core.documents import Document
from langchain_core.documents.base import Blob

from smartdoc.errors import EmptyExtractionError, FileTooLargeError, UnsupportedFormatError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024


class DocumentKind(str, Enum):
    PDF = "pdf"
    PLAIN_TEXT = "plainText"
    MARKDOWN = "markdown"


_MIME_TYPES: dict[str, DocumentKind] = {
    "application/pdf": DocumentKind.PDF,
    "text/plain": DocumentKind.PLAIN_TEXT,
    "text/markdown": DocumentKind.MARKDOWN,
    "text/x-markdown": DocumentKind.MARKDOWN,
}

_EXTENSIONS: dict[str, DocumentKind] = {
    ".pdf": DocumentKind.PDF,
    ".txt": DocumentKind.PLAIN_TEXT,
    ".md": DocumentKind.MARKDOWN,
    ".markdown": DocumentKind.MARKDOWN,
}


def classify(mime_type: str | None, filename: str) -> DocumentKind | None:
    """Return the kind for a MIME type, or for the filename's extension."""
    if mime_type:
        kind = _MIME_TYPES.get(mime_type.split(";")[0].strip().lower())
        if kind is not None:
            return kind
    return _EXTENSIONS.get(PurePath(filename).suffix.lower())


class DocumentLoader(ABC):
    """Extracts text units plus per-unit metadata from raw bytes."""

    kind: DocumentKind

    @abstractmethod
    def load(self, data: bytes, filename: str) -> list[Document]:
        """Return the text units found in *data*; may be empty."""
        ...

    @staticmethod
    def base_metadata(filename: str) -> dict[str, str]:
        return {"source": filename, "filename": filename}


class PdfLoader(DocumentLoader):
    """One unit per page, tagged with the zero-based ``page`` number."""

    kind = DocumentKind.PDF

    def load(self, data: bytes, filename: str) -> list[Document]:
        parser = PyPDFParser()
        try:
            pages = list(parser.lazy_parse(Blob.from_data(data, mime_type="application/pdf", path=filename)))
        except Exception as exc:
            logger.warning("Could not parse PDF %s", filename, exc_info=True)
            raise EmptyExtractionError(filename) from exc

        units = []
        for position, page in enumerate(pages):
            metadata = {**page.metadata, **self.base_metadata(filename)}
            metadata.setdefault("page", position)
            units.append(Document(page_content=page.page_content, metadata=metadata))
        return units


class PlainTextLoader(DocumentLoader):
    """The whole buffer is a single unit."""

    kind = DocumentKind.PLAIN_TEXT

    def load(self, data: bytes, filename: str) -> list[Document]:
        text = data.decode("utf-8", errors="replace")
        if not text.strip():
            return []
        return [Document(page_content=text, metadata=self.base_metadata(filename))]


class MarkdownLoader(PlainTextLoader):
    """Markdown is indexed as written; markup is left in place."""

    kind = DocumentKind.MARKDOWN


LOADERS: dict[DocumentKind, DocumentLoader] = {
    loader.kind: loader for loader in (PdfLoader(), PlainTextLoader(), MarkdownLoader())
}


def validate_upload(
    size: int,
    filename: str,
    mime_type: str | None,
    *,
    max_bytes: int = MAX_FILE_SIZE,
) -> DocumentKind:
    """Check size, then format; nothing is parsed here."""
    if size > max_bytes:
        raise FileTooLargeError(size, max_bytes)
    kind = classify(mime_type, filename)
    if kind is None:
        raise UnsupportedFormatError(mime_type or "unknown", filename)
    return kind


def load_document(
    data: bytes,
    filename: str,
    mime_type: str | None,
    *,
    max_bytes: int = MAX_FILE_SIZE,
) -> list[Document]:
    """Validate and parse an upload into text units."""
    kind = validate_upload(len(data), filename, mime_type, max_bytes=max_bytes)
    units = LOADERS[kind].load(data, filename)
    logger.debug("Loaded %d unit(s) from %s as %s", len(units), filename, kind.value)
    return units
