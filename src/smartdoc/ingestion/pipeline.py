"""Ingestion pipeline: upload → text units → chunks → vectors → registry.

:meth:`IngestionPipeline.ingest` and :meth:`IngestionPipeline.ingest_stream`
share one execution path; the streaming form only differs in that the
progress reports are forwarded to the caller instead of dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from langchain_core.documents import Document

from smartdoc.clients.base import EmbeddingClient, IndexItem, VectorIndex
from smartdoc.errors import ConsistencyError, DependencyError, EmptyExtractionError, SmartDocError
from smartdoc.events import ErrorEvent, ProgressEvent, UploadEvent
from smartdoc.ingestion.chunker import chunk_documents
from smartdoc.ingestion.loader import LOADERS, MAX_FILE_SIZE, validate_upload
from smartdoc.ingestion.registry import DocumentRegistry
from smartdoc.models import Chunk, DocumentEntry, IngestionResult, chunk_id, new_id
from smartdoc.streaming import EventSink, EventStream, StreamCancelled

logger = logging.getLogger(__name__)

Reporter = Callable[[ProgressEvent], Awaitable[None]]


async def _discard(_event: ProgressEvent) -> None:
    return None


class IngestionPipeline:
    """Turns uploaded files into uniquely addressable chunks in the vector index.

    Parameters
    ----------
    embeddings:
        Embedding service used for chunk vectors.
    index:
        Vector index receiving the chunks.
    registry:
        Document registry; this pipeline is its only writer.
    chunk_size, chunk_overlap:
        Chunker window settings.
    max_upload_bytes:
        Uploads above this size are rejected before parsing.
    id_factory:
        Source of fresh document ids.
    """

    def __init__(
        self,
        embeddings: EmbeddingClient,
        index: VectorIndex,
        registry: DocumentRegistry,
        *,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        max_upload_bytes: int = MAX_FILE_SIZE,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._embeddings = embeddings
        self._index = index
        self.registry = registry
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_upload_bytes = max_upload_bytes
        self._id_factory = id_factory

    # -- public API -----------------------------------------------------------

    async def ingest(self, data: bytes, filename: str, mime_type: str | None) -> IngestionResult:
        """Index one file and return its new document id and chunk count."""
        return await self._run(data, filename, mime_type, _discard)

    def ingest_stream(self, data: bytes, filename: str, mime_type: str | None) -> EventStream[UploadEvent]:
        """Same as :meth:`ingest`, reporting each stage as it starts.

        Yields ``parsing``, ``chunking``, ``indexing`` (with the chunk
        total) and ``done`` (with the result), or a single terminal
        :class:`~smartdoc.events.ErrorEvent`.
        """

        async def produce(sink: EventSink[UploadEvent]) -> None:
            try:
                await self._run(data, filename, mime_type, sink.emit)
            except StreamCancelled:
                raise
            except SmartDocError as exc:
                logger.warning("Ingestion of %s failed: %s", filename, exc)
                await sink.emit(ErrorEvent(error=str(exc)))
            except Exception:
                logger.exception("Unexpected failure ingesting %s", filename)
                await sink.emit(ErrorEvent(error="Ingestion failed"))

        return EventStream(produce)

    async def delete(self, document_id: str) -> bool:
        """Remove a document's vectors, then its registry entry.

        Returns ``False`` for an unknown id. If the vector deletion
        fails the entry is kept and :class:`ConsistencyError` is raised;
        calling again retries.
        """
        async with self.registry.locks.hold(document_id):
            entry = self.registry.get(document_id)
            if entry is None:
                return False
            try:
                await self._index.delete(entry.chunk_ids)
            except DependencyError as exc:
                logger.error("Vector deletion failed for %s; keeping registry entry", document_id)
                raise ConsistencyError(document_id, exc) from exc
            await self.registry.remove(document_id)
        logger.info("Deleted document %s (%d chunks)", document_id, len(entry.chunk_ids))
        return True

    # -- internals ------------------------------------------------------------

    async def _run(
        self,
        data: bytes,
        filename: str,
        mime_type: str | None,
        report: Reporter,
    ) -> IngestionResult:
        kind = validate_upload(len(data), filename, mime_type, max_bytes=self.max_upload_bytes)

        await report(ProgressEvent.parsing())
        units = await asyncio.to_thread(LOADERS[kind].load, data, filename)

        await report(ProgressEvent.chunking())
        document_id = self._new_document_id()
        chunks = self._build_chunks(document_id, units)
        if not chunks:
            raise EmptyExtractionError(filename)

        await report(ProgressEvent.indexing(len(chunks)))
        await self._index_chunks(document_id, filename, chunks)

        result = IngestionResult(document_id=document_id, chunks=len(chunks), filename=filename)
        logger.info("Ingested %s as %s (%d chunks)", filename, document_id, len(chunks))
        await report(ProgressEvent.done(result))
        return result

    def _new_document_id(self) -> str:
        document_id = self._id_factory()
        while document_id in self.registry:
            logger.warning("Generated document id %s is already registered; drawing another", document_id)
            document_id = self._id_factory()
        return document_id

    def _build_chunks(self, document_id: str, units: Sequence[Document]) -> list[Chunk]:
        pieces = chunk_documents(units, chunk_size=self.chunk_size, chunk_overlap=self.chunk_overlap)
        return [
            Chunk(
                id=chunk_id(document_id, ordinal),
                source_document_id=document_id,
                ordinal=ordinal,
                text=piece.page_content,
                metadata={**piece.metadata, "document_id": document_id},
            )
            for ordinal, piece in enumerate(pieces)
        ]

    async def _index_chunks(self, document_id: str, filename: str, chunks: list[Chunk]) -> None:
        """Embed and upsert *chunks* as one batch, then register the document.

        If the upsert or the registry step fails, or the task is
        cancelled before the document is registered, the chunk ids are
        deleted again so no vector outlives a failed ingestion. A
        cancelled upsert is waited for first, since the index may still
        be writing in a worker thread.
        """
        ids = [chunk.id for chunk in chunks]
        vectors = await self._embeddings.embed_batch([chunk.text for chunk in chunks])
        items = [
            IndexItem(id=chunk.id, vector=vector, text=chunk.text, metadata=chunk.metadata)
            for chunk, vector in zip(chunks, vectors)
        ]
        try:
            await self._upsert_to_completion(items)
            async with self.registry.locks.hold(document_id):
                await self.registry.register(DocumentEntry(document_id=document_id, filename=filename, chunk_ids=ids))
        except BaseException:
            # Once registered, the entry owns the vectors and delete() removes them.
            if document_id not in self.registry:
                await self._discard_vectors(document_id, ids)
            raise

    async def _upsert_to_completion(self, items: list[IndexItem]) -> None:
        upsert = asyncio.ensure_future(self._index.upsert(items))
        try:
            await asyncio.shield(upsert)
        except asyncio.CancelledError:
            await asyncio.wait([upsert])
            if not upsert.cancelled() and upsert.exception() is not None:
                logger.debug("Upsert finished with an error after cancellation", exc_info=upsert.exception())
            raise

    async def _discard_vectors(self, document_id: str, ids: list[str]) -> None:
        try:
            await self._index.delete(ids)
        except Exception:
            logger.warning("Could not clean up vectors of failed ingestion %s", document_id, exc_info=True)
