"""Chroma implementation of the vector-index abstraction."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import chromadb

from smartdoc.clients.base import IndexHit, IndexItem, VectorIndex
from smartdoc.errors import DependencyError

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool)


def _clean_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Chroma only stores scalar metadata values; stringify the rest."""
    cleaned: dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        cleaned[key] = value if isinstance(value, _SCALARS) else str(value)
    return cleaned


def distance_to_score(distance: float, space: str = "cosine") -> float:
    """Convert a Chroma distance into a similarity in [0, 1] (1.0 = identical)."""
    if space == "cosine":
        score = 1.0 - distance
    else:
        score = 1.0 / (1.0 + distance)
    return min(1.0, max(0.0, score))


class ChromaVectorIndex(VectorIndex):
    """Chroma-backed vector index.

    The chromadb HTTP client is blocking, so every call runs in a worker
    thread.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    space:
        Distance function of the collection, ``"cosine"`` or ``"l2"``.
    client:
        Pre-built chromadb client (tests, embedded mode).
    """

    def __init__(
        self,
        collection_name: str,
        *,
        host: str = "localhost",
        port: int = 8000,
        space: str = "cosine",
        client: Any = None,
    ) -> None:
        self.collection_name = collection_name
        self.space = space
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection = self._client.get_or_create_collection(
            collection_name, metadata={"hnsw:space": space}
        )

    async def upsert(self, items: Sequence[IndexItem]) -> None:
        if not items:
            return
        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[item.id for item in items],
                embeddings=[item.vector for item in items],
                documents=[item.text for item in items],
                metadatas=[_clean_metadata(item.metadata) for item in items],
            )
        except Exception as exc:
            raise DependencyError("vector index", str(exc)) from exc
        logger.debug("Upserted %d vector(s) into %s", len(items), self.collection_name)

    async def query(self, vector: list[float], top_k: int) -> list[IndexHit]:
        try:
            results = await asyncio.to_thread(
                self._collection.query,
                query_embeddings=[vector],
                n_results=top_k,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise DependencyError("vector index", str(exc)) from exc

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        return [
            IndexHit(
                id=hit_id,
                text=text or "",
                metadata=dict(meta or {}),
                score=distance_to_score(dist, self.space),
            )
            for hit_id, text, meta, dist in zip(ids, docs, metas, distances)
        ]

    async def delete(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        try:
            await asyncio.to_thread(self._collection.delete, ids=list(ids))
        except Exception as exc:
            raise DependencyError("vector index", str(exc)) from exc
        logger.debug("Deleted %d vector(s) from %s", len(ids), self.collection_name)
