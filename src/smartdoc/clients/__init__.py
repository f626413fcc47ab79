"""
Clients — adapters for the embedding, vector-index, and completion services.

The pipelines only see the abstract bases in :mod:`smartdoc.clients.base`;
concrete adapters are built once by the application factory and injected.
"""

from smartdoc.clients.base import (
    CompletionClient,
    EmbeddingClient,
    IndexHit,
    IndexItem,
    VectorIndex,
)

__all__ = [
    "CompletionClient",
    "EmbeddingClient",
    "IndexHit",
    "IndexItem",
    "VectorIndex",
]
