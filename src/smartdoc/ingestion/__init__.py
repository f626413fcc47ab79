"""
Ingestion — document loading, chunking, and indexing into the vector store.

Converts uploaded PDF, plain-text and Markdown files into chunks with
deterministic ids (``<documentId>-chunk-<ordinal>``) so a document's
vectors can later be deleted without scanning the index.
"""

from smartdoc.ingestion.pipeline import IngestionPipeline
from smartdoc.ingestion.registry import DocumentRegistry

__all__ = ["DocumentRegistry", "IngestionPipeline"]
