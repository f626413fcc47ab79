"""Document registry — which chunk ids belong to which uploaded document."""

from __future__ import annotations

import logging

from pydantic import TypeAdapter

from smartdoc.models import DocumentEntry, DocumentSummary
from smartdoc.storage import KeyedLocks, NullSnapshotStore, SnapshotStore, SnapshotWriter, load_records

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[DocumentEntry])


class DocumentRegistry:
    """In-memory map of document id → :class:`DocumentEntry`.

    Only :class:`~smartdoc.ingestion.pipeline.IngestionPipeline` mutates
    the registry. Readers get copies and never lock. Every mutation is
    mirrored to the snapshot store from a worker thread.
    """

    def __init__(self, store: SnapshotStore | None = None) -> None:
        self._store = store or NullSnapshotStore()
        self._entries: dict[str, DocumentEntry] = {}
        self.locks = KeyedLocks()
        self._writer = SnapshotWriter(self._store, "document registry")
        for entry in _ENTRIES.validate_python(load_records(self._store, "document registry")):
            self._entries[entry.document_id] = entry
        if self._entries:
            logger.info("Loaded %d document(s) from snapshot", len(self._entries))

    # -- reads ----------------------------------------------------------------

    def get(self, document_id: str) -> DocumentEntry | None:
        entry = self._entries.get(document_id)
        return entry.model_copy(deep=True) if entry is not None else None

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def list(self) -> list[DocumentSummary]:
        """Summaries of all documents, most recently uploaded first."""
        entries = sorted(self._entries.values(), key=lambda e: e.uploaded_at, reverse=True)
        return [
            DocumentSummary(
                id=entry.document_id,
                filename=entry.filename,
                chunks=len(entry.chunk_ids),
                uploaded_at=entry.uploaded_at,
            )
            for entry in entries
        ]

    # -- writes (ingestion pipeline only) --------------------------------------

    async def register(self, entry: DocumentEntry) -> None:
        """Add *entry*.

        Raises
        ------
        ValueError
            If an entry with the same id already exists; chunk ids are
            derived from the document id and must never be reused.
        """
        if entry.document_id in self._entries:
            raise ValueError(f"Document id already registered: {entry.document_id}")
        self._entries[entry.document_id] = entry.model_copy(deep=True)
        await self._persist()

    async def remove(self, document_id: str) -> bool:
        removed = self._entries.pop(document_id, None) is not None
        if removed:
            await self._persist()
        return removed

    async def _persist(self) -> None:
        records = _ENTRIES.dump_python(list(self._entries.values()), mode="json", by_alias=True)
        await self._writer.save(records)
