"""FastAPI application exposing chat and document ingestion over HTTP."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from smartdoc import __version__
from smartdoc.config import Settings
from smartdoc.errors import ConsistencyError, DependencyError, NotFoundError, ValidationError
from smartdoc.events import to_ndjson
from smartdoc.ingestion.loader import validate_upload
from smartdoc.models import ChatAnswer, Conversation, ConversationSummary, DocumentSummary, IngestionResult
from smartdoc.serving.services import Services, build_services
from smartdoc.streaming import EventStream

logger = logging.getLogger(__name__)

NDJSON = "application/x-ndjson"


# ── Request / Response schemas ────────────────────────────────────────
class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(_Schema):
    """Incoming question from the user."""

    prompt: str = Field(min_length=1, max_length=10_000)
    conversation_id: str | None = None


class DocumentListResponse(_Schema):
    documents: list[DocumentSummary]


class DeletedResponse(_Schema):
    deleted: bool


async def _ndjson(stream: EventStream) -> AsyncIterator[bytes]:
    try:
        async for event in stream:
            yield to_ndjson(event)
    finally:
        await stream.aclose()


def _streaming(stream: EventStream) -> StreamingResponse:
    return StreamingResponse(
        _ndjson(stream),
        media_type=NDJSON,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def _error(status: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the application.

    When *services* is omitted they are constructed from *settings*
    (or the environment) at startup, not at import time.
    """
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services(settings)
        yield

    app = FastAPI(
        title="SmartDoc Analyst API",
        version=__version__,
        description="Upload documents, ask questions, and get answers grounded in them.",
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.settings = settings

    # ── Error mapping ─────────────────────────────────────────────────
    @app.exception_handler(ValidationError)
    async def _validation(_: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, exc)

    @app.exception_handler(NotFoundError)
    async def _not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, exc)

    @app.exception_handler(ConsistencyError)
    async def _consistency(_: Request, exc: ConsistencyError) -> JSONResponse:
        return _error(409, exc)

    @app.exception_handler(DependencyError)
    async def _dependency(_: Request, exc: DependencyError) -> JSONResponse:
        logger.warning("Dependency failure: %s", exc)
        return _error(502, exc)

    def svc(request: Request) -> Services:
        return request.app.state.services

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.post("/api/chat", response_model=ChatAnswer, tags=["chat"])
    async def chat(body: ChatRequest, request: Request) -> ChatAnswer:
        """Answer a question in one response."""
        return await svc(request).generation.answer(body.prompt, body.conversation_id)

    @app.post("/api/chat/stream", tags=["chat"])
    async def chat_stream(body: ChatRequest, request: Request) -> StreamingResponse:
        """Answer a question as an NDJSON event stream."""
        return _streaming(svc(request).generation.answer_stream(body.prompt, body.conversation_id))

    @app.post("/api/documents/upload", response_model=IngestionResult, status_code=201, tags=["documents"])
    async def upload(request: Request, file: UploadFile = File(...)) -> IngestionResult:
        """Upload and index a PDF, TXT, or MD file."""
        pipeline = svc(request).ingestion
        filename = file.filename or "upload"
        if file.size is not None:
            validate_upload(file.size, filename, file.content_type, max_bytes=pipeline.max_upload_bytes)
        data = await file.read()
        return await pipeline.ingest(data, filename, file.content_type)

    @app.post("/api/documents/upload-stream", tags=["documents"])
    async def upload_stream(request: Request, file: UploadFile = File(...)) -> StreamingResponse:
        """Upload a file and stream parsing / chunking / indexing progress."""
        pipeline = svc(request).ingestion
        filename = file.filename or "upload"
        if file.size is not None:
            validate_upload(file.size, filename, file.content_type, max_bytes=pipeline.max_upload_bytes)
        data = await file.read()
        validate_upload(len(data), filename, file.content_type, max_bytes=pipeline.max_upload_bytes)
        return _streaming(pipeline.ingest_stream(data, filename, file.content_type))

    @app.get("/api/documents", response_model=DocumentListResponse, tags=["documents"])
    async def list_documents(request: Request) -> DocumentListResponse:
        return DocumentListResponse(documents=svc(request).registry.list())

    @app.delete("/api/documents/{document_id}", response_model=DeletedResponse, tags=["documents"])
    async def delete_document(document_id: str, request: Request) -> DeletedResponse:
        """Remove a document and all its chunks from the vector store."""
        if not await svc(request).ingestion.delete(document_id):
            raise NotFoundError("document", document_id)
        return DeletedResponse(deleted=True)

    @app.get("/api/conversations", response_model=list[ConversationSummary], tags=["conversations"])
    async def list_conversations(request: Request) -> list[ConversationSummary]:
        return svc(request).conversations.list()

    @app.get("/api/conversations/{conversation_id}", response_model=Conversation, tags=["conversations"])
    async def get_conversation(conversation_id: str, request: Request) -> Conversation:
        conversation = svc(request).conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError("conversation", conversation_id)
        return conversation

    @app.delete("/api/conversations/{conversation_id}", response_model=DeletedResponse, tags=["conversations"])
    async def delete_conversation(conversation_id: str, request: Request) -> DeletedResponse:
        return DeletedResponse(deleted=await svc(request).conversations.delete(conversation_id))

    return app


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("smartdoc.serving.app:create_app", factory=True, host="0.0.0.0", port=3000)


if __name__ == "__main__":
    main()
