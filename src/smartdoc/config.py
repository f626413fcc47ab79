"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file.

    Build one instance at process start and hand it to
    :func:`smartdoc.serving.app.create_app`; nothing else in the package
    reads the environment.
    """

    # LLM
    llm_api_key: str = Field(default="", description="API key for the OpenAI-compatible chat endpoint")
    llm_model_name: str = Field(default="llama-3.3-70b-versatile", description="LLM model identifier")
    llm_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description=(
            "Base URL for the chat completions API. Any OpenAI-compatible "
            "endpoint works (Groq, OpenAI cloud, a local vLLM server)."
        ),
    )
    llm_temperature: float = 0.2

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "smartdoc"
    chroma_distance: str = Field(default="cosine", description="Either 'cosine' or 'l2'")

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    # Ingestion / retrieval
    chunk_size: int = 1000
    chunk_overlap: int = 200
    retrieval_top_k: int = 4
    max_upload_bytes: int = 10 * 1024 * 1024

    # Persistence — empty string keeps everything in memory.
    data_dir: str = ""

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @model_validator(mode="after")
    def _check_ranges(self) -> Settings:
        if not 0 < self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be > 0 and < chunk_size ({self.chunk_size})"
            )
        if self.retrieval_top_k < 1:
            raise ValueError("retrieval_top_k must be >= 1")
        if self.chroma_distance not in ("cosine", "l2"):
            raise ValueError(f"Unsupported chroma_distance: {self.chroma_distance!r}")
        return self
