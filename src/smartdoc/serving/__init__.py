"""
Serving — FastAPI application exposing chat and document ingestion.

Use :func:`smartdoc.serving.app.create_app` to build the app; external
clients are constructed once at startup and injected into the pipelines.
"""
