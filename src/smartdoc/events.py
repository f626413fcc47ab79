"""Wire events for the NDJSON chat and upload-progress streams.

Chat turn::

    {"conversationId": "<id>"}
    {"content": "<delta text>"}
    {"sources": [{"id": "...", "content": "...", "metadata": {...}, "score": 0.87}]}
    {"error": "<message>"}

Upload progress::

    {"stage": "parsing"}
    {"stage": "chunking"}
    {"stage": "indexing", "total": 4}
    {"stage": "done", "result": {"documentId": "...", "chunks": 4, "filename": "..."}}
    {"error": "<message>"}
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from smartdoc.models import IngestionResult, RetrievedDocument


class _Event(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ConversationIdEvent(_Event):
    conversation_id: str


class ContentEvent(_Event):
    content: str


class SourcesEvent(_Event):
    sources: list[RetrievedDocument]


class ErrorEvent(_Event):
    error: str


StreamEvent = Union[ConversationIdEvent, ContentEvent, SourcesEvent, ErrorEvent]


class ProgressEvent(_Event):
    stage: Literal["parsing", "chunking", "indexing", "done"]
    total: int | None = None
    result: IngestionResult | None = None

    @classmethod
    def parsing(cls) -> ProgressEvent:
        return cls(stage="parsing")

    @classmethod
    def chunking(cls) -> ProgressEvent:
        return cls(stage="chunking")

    @classmethod
    def indexing(cls, total: int) -> ProgressEvent:
        return cls(stage="indexing", total=total)

    @classmethod
    def done(cls, result: IngestionResult) -> ProgressEvent:
        return cls(stage="done", result=result)


UploadEvent = Union[ProgressEvent, ErrorEvent]


def to_ndjson(event: BaseModel) -> bytes:
    """Encode *event* as one UTF-8 NDJSON line."""
    return (event.model_dump_json(by_alias=True, exclude_none=True) + "\n").encode("utf-8")
