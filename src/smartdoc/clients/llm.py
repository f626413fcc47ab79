"""Chat completions through any OpenAI-compatible endpoint.

``ChatOpenAI`` talks to Groq, OpenAI cloud, or a local vLLM server
alike; only ``base_url`` and the key change.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence

from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI

from smartdoc.clients.base import CompletionClient
from smartdoc.errors import DependencyError

logger = logging.getLogger(__name__)


def build_chat_model(
    model: str,
    *,
    api_key: str = "",
    base_url: str = "",
    temperature: float = 0.2,
) -> ChatOpenAI:
    """Return the configured chat model.

    A dummy key (``"EMPTY"``) is used when none is given, because local
    vLLM servers do not authenticate but LangChain requires a value.
    """
    kwargs: dict = {
        "model": model,
        "temperature": temperature,
        "api_key": api_key or "EMPTY",
    }
    if base_url:
        logger.info("Using chat endpoint: %s", base_url)
        kwargs["base_url"] = base_url
    return ChatOpenAI(**kwargs)


def _text_of(content: str | list) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


class ChatCompletionClient(CompletionClient):
    """:class:`CompletionClient` backed by a LangChain chat model."""

    def __init__(self, chat_model: ChatOpenAI) -> None:
        self._model = chat_model

    async def complete(self, messages: Sequence[BaseMessage]) -> str:
        try:
            response = await self._model.ainvoke(list(messages))
        except Exception as exc:
            raise DependencyError("completion service", str(exc)) from exc
        return _text_of(response.content)

    async def complete_stream(self, messages: Sequence[BaseMessage]) -> AsyncIterator[str]:
        try:
            async for chunk in self._model.astream(list(messages)):
                text = _text_of(chunk.content)
                if text:
                    yield text
        except DependencyError:
            raise
        except Exception as exc:
            raise DependencyError("completion service", str(exc)) from exc
