"""Similarity retrieval over the vector index.

Kept apart from the generation pipeline so evaluation scripts and tests
can query the index the same way a chat turn does.
"""

from __future__ import annotations

import logging

from smartdoc.clients.base import EmbeddingClient, IndexHit, VectorIndex
from smartdoc.models import RetrievedDocument

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 4


class Retriever:
    """Embeds a query and returns the most similar chunks.

    Parameters
    ----------
    embeddings:
        Embedding service; must be the one used at ingestion time.
    index:
        Vector index to query.
    default_k:
        Number of results returned by :meth:`search`.
    """

    def __init__(self, embeddings: EmbeddingClient, index: VectorIndex, *, default_k: int = DEFAULT_TOP_K) -> None:
        self._embeddings = embeddings
        self._index = index
        self.default_k = default_k

    async def search(self, query: str, *, k: int | None = None) -> list[RetrievedDocument]:
        """Return up to *k* chunks for *query*, ranked by the index's score."""
        k = k or self.default_k
        vector = await self._embeddings.embed(query)
        hits = await self._index.query(vector, k)
        logger.debug("Retrieved %d chunk(s) for query of %d chars", len(hits), len(query))
        return [self._to_document(hit) for hit in hits[:k]]

    @staticmethod
    def _to_document(hit: IndexHit) -> RetrievedDocument:
        return RetrievedDocument(
            id=hit.id,
            content=hit.text,
            metadata=hit.metadata,
            score=min(1.0, max(0.0, hit.score)),
        )
