"""Sentence-transformer embeddings via ``langchain-huggingface``."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from langchain_huggingface import HuggingFaceEmbeddings

from smartdoc.clients.base import EmbeddingClient
from smartdoc.errors import DependencyError

logger = logging.getLogger(__name__)


class HuggingFaceEmbeddingClient(EmbeddingClient):
    """Local sentence-transformer model; encoding runs in a worker thread.

    Parameters
    ----------
    model_name:
        HuggingFace model id, e.g. ``sentence-transformers/all-MiniLM-L6-v2``.
    embeddings:
        Pre-built LangChain embeddings object; overrides *model_name*.
    """

    def __init__(self, model_name: str = "", *, embeddings: HuggingFaceEmbeddings | None = None) -> None:
        self._embeddings = embeddings or HuggingFaceEmbeddings(model_name=model_name)

    async def embed(self, text: str) -> list[float]:
        try:
            return await asyncio.to_thread(self._embeddings.embed_query, text)
        except Exception as exc:
            raise DependencyError("embedding service", str(exc)) from exc

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = await asyncio.to_thread(self._embeddings.embed_documents, list(texts))
        except Exception as exc:
            raise DependencyError("embedding service", str(exc)) from exc
        if len(vectors) != len(texts):
            raise DependencyError("embedding service", f"expected {len(texts)} vectors, got {len(vectors)}")
        logger.debug("Embedded %d text(s)", len(texts))
        return vectors
