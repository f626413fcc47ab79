"""Builds every external client and pipeline once, from validated settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from smartdoc.config import Settings
from smartdoc.generation import ConversationStore, RetrievalGenerationPipeline, Retriever
from smartdoc.ingestion import DocumentRegistry, IngestionPipeline
from smartdoc.storage import snapshot_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer needs, wired together."""

    ingestion: IngestionPipeline
    generation: RetrievalGenerationPipeline
    registry: DocumentRegistry
    conversations: ConversationStore


def build_services(settings: Settings) -> Services:
    """Construct the real embedding, Chroma and chat clients and both pipelines."""
    from smartdoc.clients.chroma_index import ChromaVectorIndex
    from smartdoc.clients.embeddings import HuggingFaceEmbeddingClient
    from smartdoc.clients.llm import ChatCompletionClient, build_chat_model

    embeddings = HuggingFaceEmbeddingClient(settings.embedding_model)
    index = ChromaVectorIndex(
        settings.chroma_collection,
        host=settings.chroma_host,
        port=settings.chroma_port,
        space=settings.chroma_distance,
    )
    completion = ChatCompletionClient(
        build_chat_model(
            settings.llm_model_name,
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            temperature=settings.llm_temperature,
        )
    )

    registry = DocumentRegistry(snapshot_store(settings.data_dir, "documents"))
    conversations = ConversationStore(snapshot_store(settings.data_dir, "conversations"))
    logger.info(
        "Services ready: collection=%s model=%s top_k=%d",
        settings.chroma_collection,
        settings.llm_model_name,
        settings.retrieval_top_k,
    )
    return Services(
        ingestion=IngestionPipeline(
            embeddings,
            index,
            registry,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            max_upload_bytes=settings.max_upload_bytes,
        ),
        generation=RetrievalGenerationPipeline(
            Retriever(embeddings, index, default_k=settings.retrieval_top_k),
            completion,
            conversations,
        ),
        registry=registry,
        conversations=conversations,
    )
