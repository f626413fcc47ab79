"""Abstract interfaces for the external services the pipelines call.

Every method is a suspension point. Implementations must translate
their own failures into :class:`~smartdoc.errors.DependencyError` and
impose their own timeouts; the pipelines add neither.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any

from langchain_core.messages import BaseMessage
from pydantic import BaseModel, Field


class IndexItem(BaseModel):
    """One vector to upsert."""

    id: str
    vector: list[float]
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class IndexHit(BaseModel):
    """One similarity-query result; ``score`` is normalised to [0, 1]."""

    id: str
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float


class EmbeddingClient(ABC):
    """Text → fixed-length vector."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]: ...

    @abstractmethod
    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts*; the i-th vector belongs to the i-th text."""
        ...


class VectorIndex(ABC):
    """Backend-agnostic vector store.

    Adding a backend (Pinecone, Qdrant …) only requires subclassing and
    implementing the three methods below.
    """

    @abstractmethod
    async def upsert(self, items: Sequence[IndexItem]) -> None: ...

    @abstractmethod
    async def query(self, vector: list[float], top_k: int) -> list[IndexHit]:
        """Return at most *top_k* hits, most similar first."""
        ...

    @abstractmethod
    async def delete(self, ids: Sequence[str]) -> None: ...


class CompletionClient(ABC):
    """Chat model taking role-tagged messages."""

    @abstractmethod
    async def complete(self, messages: Sequence[BaseMessage]) -> str: ...

    @abstractmethod
    def complete_stream(self, messages: Sequence[BaseMessage]) -> AsyncIterator[str]:
        """Yield text fragments as the model produces them."""
        ...
