"""
Generation — retrieval, prompt construction, streamed answers, and the
conversation log.

Public API
----------
- :class:`RetrievalGenerationPipeline` — ``answer`` and ``answer_stream``.
- :class:`Retriever` — similarity search returning scored chunks.
- :class:`ConversationStore` — per-conversation message log.
"""

from smartdoc.generation.conversations import ConversationStore
from smartdoc.generation.pipeline import RetrievalGenerationPipeline
from smartdoc.generation.retriever import Retriever

__all__ = ["ConversationStore", "RetrievalGenerationPipeline", "Retriever"]
