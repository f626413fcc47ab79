"""Fixed-window text chunking."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from langchain_core.documents import Document
from langchain_text_splitters import TextSplitter

from smartdoc.errors import EmptyContentError

if TYPE_CHECKING:
    from collections.abc import Iterable


def split(text: str, size: int, overlap: int) -> list[str]:
    """Split *text* into overlapping windows of at most *size* characters.

    The text is trimmed first. A trimmed text of at most *size*
    characters yields exactly one chunk; longer text yields a window at
    every multiple of ``size - overlap``, so dropping the first *overlap*
    characters of every chunk but the first and concatenating gives the
    trimmed text back.

    Raises
    ------
    ValueError
        If ``0 < overlap < size`` does not hold.
    EmptyContentError
        If *text* is blank.
    """
    if not 0 < overlap < size:
        raise ValueError(f"overlap ({overlap}) must be > 0 and < size ({size})")
    content = text.strip()
    if not content:
        raise EmptyContentError()
    if len(content) <= size:
        return [content]
    step = size - overlap
    return [content[start : start + size] for start in range(0, len(content), step)]


class FixedWindowTextSplitter(TextSplitter):
    """LangChain splitter adapter around :func:`split`.

    Lets callers use ``split_documents`` so loader metadata (source,
    page, …) is copied onto every chunk.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200, **kwargs: Any) -> None:
        if not 0 < chunk_overlap < chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be > 0 and < chunk_size ({chunk_size})"
            )
        super().__init__(chunk_size=chunk_size, chunk_overlap=chunk_overlap, **kwargs)

    def split_text(self, text: str) -> list[str]:
        return split(text, self._chunk_size, self._chunk_overlap)


def chunk_documents(
    documents: Iterable[Document],
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
) -> list[Document]:
    """Split *documents* into chunks, in order, skipping blank units.

    Parameters
    ----------
    documents:
        Text units produced by a loader (one per PDF page, or one for a
        whole text file).
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Number of overlapping characters between consecutive chunks of
        the same unit.

    Returns
    -------
    list[Document]
        Chunks with the unit's metadata plus ``chunk_index``, the
        position of the chunk within the whole document.
    """
    splitter = FixedWindowTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    non_blank = [doc for doc in documents if doc.page_content.strip()]
    chunks = splitter.split_documents(non_blank)
    for index, chunk in enumerate(chunks):
        chunk.metadata["chunk_index"] = index
    return chunks
