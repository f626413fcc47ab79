"""Domain models shared by the ingestion and generation pipelines.

Field names are snake_case in Python and camelCase on the wire; dump
with ``by_alias=True`` when serialising for clients or snapshots.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def chunk_id(document_id: str, ordinal: int) -> str:
    """Return the deterministic id of the *ordinal*-th chunk of a document."""
    return f"{document_id}-chunk-{ordinal}"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -- ingestion ----------------------------------------------------------------


class Chunk(_WireModel):
    """A slice of a document's text; the unit of embedding and retrieval."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    source_document_id: str
    ordinal: int
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentEntry(_WireModel):
    """Registry record: which chunk ids belong to an uploaded document.

    ``chunk_ids`` is exactly the list of ids upserted for the document,
    in ordinal order.
    """

    document_id: str
    filename: str
    chunk_ids: list[str]
    uploaded_at: datetime = Field(default_factory=utcnow)


class DocumentSummary(_WireModel):
    id: str
    filename: str
    chunks: int
    uploaded_at: datetime


class IngestionResult(_WireModel):
    document_id: str
    chunks: int
    filename: str


# -- retrieval / conversation -------------------------------------------------


class RetrievedDocument(_WireModel):
    """A chunk returned by a similarity query; ``score`` is in [0, 1]."""

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float = Field(ge=0.0, le=1.0)


class ConversationMessage(_WireModel):
    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    sources: list[RetrievedDocument] | None = None


class Conversation(_WireModel):
    id: str = Field(default_factory=new_id)
    messages: list[ConversationMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def title(self) -> str:
        """First user message, truncated to 50 characters."""
        for message in self.messages:
            if message.role == "user" and message.content.strip():
                trimmed = message.content.strip()
                return trimmed[:50] + "..." if len(trimmed) > 50 else trimmed
        return "New conversation"


class ConversationSummary(_WireModel):
    id: str
    title: str
    updated_at: datetime


class ChatAnswer(_WireModel):
    """Result of a non-streaming turn."""

    conversation_id: str
    message: str
    sources: list[RetrievedDocument] = Field(default_factory=list)
