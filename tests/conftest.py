"""Shared pytest configuration and fixtures.

The fakes below stand in for the embedding, vector-index and completion
services so the pipelines can be exercised without Chroma, HuggingFace
or an LLM endpoint.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence

import pytest
from langchain_core.messages import BaseMessage

from smartdoc.clients.base import CompletionClient, EmbeddingClient, IndexHit, IndexItem, VectorIndex
from smartdoc.errors import DependencyError
from smartdoc.generation import ConversationStore, RetrievalGenerationPipeline, Retriever
from smartdoc.ingestion import DocumentRegistry, IngestionPipeline


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake collaborators ──────────────────────────────────────────────────


class FakeEmbeddings(EmbeddingClient):
    """Deterministic 3-d vectors derived from the text."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.batches: list[list[str]] = []

    @staticmethod
    def _vector(text: str) -> list[float]:
        return [float(len(text)), float(text.count(" ")), float(sum(map(ord, text[:8])))]

    async def embed(self, text: str) -> list[float]:
        if self.fail:
            raise DependencyError("embedding service", "unavailable")
        return self._vector(text)

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if self.fail:
            raise DependencyError("embedding service", "unavailable")
        self.batches.append(list(texts))
        return [self._vector(text) for text in texts]


class FakeIndex(VectorIndex):
    """In-memory index that records calls and returns canned hits."""

    def __init__(self, hits: list[IndexHit] | None = None) -> None:
        self.items: dict[str, IndexItem] = {}
        self.hits = hits or []
        self.upsert_calls: list[list[IndexItem]] = []
        self.delete_calls: list[list[str]] = []
        self.queries: list[tuple[list[float], int]] = []
        self.fail_upsert = False
        self.fail_delete = False
        self.fail_query = False

    async def upsert(self, items: Sequence[IndexItem]) -> None:
        self.upsert_calls.append(list(items))
        if self.fail_upsert:
            raise DependencyError("vector index", "upsert rejected")
        for item in items:
            self.items[item.id] = item

    async def query(self, vector: list[float], top_k: int) -> list[IndexHit]:
        self.queries.append((vector, top_k))
        if self.fail_query:
            raise DependencyError("vector index", "query timed out")
        return self.hits[:top_k]

    async def delete(self, ids: Sequence[str]) -> None:
        self.delete_calls.append(list(ids))
        if self.fail_delete:
            raise DependencyError("vector index", "delete rejected")
        for item_id in ids:
            self.items.pop(item_id, None)


class FakeCompletion(CompletionClient):
    """Streams canned fragments; optionally fails after ``fail_after`` of them."""

    def __init__(self, fragments: Sequence[str] = ("Hello ", "world"), fail_after: int | None = None) -> None:
        self.fragments = list(fragments)
        self.fail_after = fail_after
        self.prompts: list[list[BaseMessage]] = []
        self.closed = False
        self.cancelled = False
        self.gate: asyncio.Event | None = None

    async def complete(self, messages: Sequence[BaseMessage]) -> str:
        self.prompts.append(list(messages))
        if self.fail_after is not None:
            raise DependencyError("completion service", "model overloaded")
        return "".join(self.fragments) + "\n"

    async def complete_stream(self, messages: Sequence[BaseMessage]) -> AsyncIterator[str]:
        self.prompts.append(list(messages))
        try:
            for position, fragment in enumerate(self.fragments):
                if self.fail_after is not None and position >= self.fail_after:
                    raise DependencyError("completion service", "connection reset")
                if self.gate is not None and position > 0:
                    await self.gate.wait()
                yield fragment
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise DependencyError("completion service", "connection reset")
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        finally:
            self.closed = True


SAMPLE_HITS = [
    IndexHit(id="doc-a-chunk-0", text="Kubernetes schedules pods onto nodes.", metadata={"source": "k8s.md"}, score=0.91),
    IndexHit(id="doc-b-chunk-3", text="Pods are the smallest deployable units.", metadata={"source": "pods.pdf", "page": 2}, score=0.74),
]


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture()
def index() -> FakeIndex:
    return FakeIndex(hits=list(SAMPLE_HITS))


@pytest.fixture()
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture()
def registry() -> DocumentRegistry:
    return DocumentRegistry()


@pytest.fixture()
def conversations() -> ConversationStore:
    return ConversationStore()


@pytest.fixture()
def ingestion(embeddings: FakeEmbeddings, index: FakeIndex, registry: DocumentRegistry) -> IngestionPipeline:
    return IngestionPipeline(embeddings, index, registry, chunk_size=1000, chunk_overlap=200)


@pytest.fixture()
def generation(
    embeddings: FakeEmbeddings,
    index: FakeIndex,
    completion: FakeCompletion,
    conversations: ConversationStore,
) -> RetrievalGenerationPipeline:
    return RetrievalGenerationPipeline(Retriever(embeddings, index, default_k=4), completion, conversations)
