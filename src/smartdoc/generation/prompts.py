"""Prompt construction for answering questions from retrieved chunks.

The template is fixed at import time; it is not configurable at runtime.
"""

from __future__ import annotations

from collections.abc import Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from smartdoc.models import ConversationMessage, RetrievedDocument

CONTEXT_SEPARATOR = "\n\n---\n\n"

NO_CONTEXT_PLACEHOLDER = "No relevant documents found."

RAG_PROMPT_TEMPLATE = """\
You are SmartDoc Analyst, a helpful assistant that answers questions based on the provided context from documents.

Context from documents:
{context}

User question: {question}

Provide a clear and accurate answer based only on the context above. If the context doesn't contain relevant information, say so."""


def build_context(sources: Sequence[RetrievedDocument]) -> str:
    """Join retrieved chunk texts, or return the placeholder when there are none."""
    context = CONTEXT_SEPARATOR.join(source.content for source in sources)
    return context or NO_CONTEXT_PLACEHOLDER


def build_rag_prompt(question: str, sources: Sequence[RetrievedDocument]) -> str:
    return RAG_PROMPT_TEMPLATE.format(context=build_context(sources), question=question)


def history_messages(history: Sequence[ConversationMessage]) -> list[BaseMessage]:
    """Convert stored turns to LangChain messages, oldest first."""
    messages: list[BaseMessage] = []
    for message in history:
        if message.role == "user":
            messages.append(HumanMessage(content=message.content))
        else:
            messages.append(AIMessage(content=message.content))
    return messages


def build_messages(
    question: str,
    sources: Sequence[RetrievedDocument],
    history: Sequence[ConversationMessage] = (),
) -> list[BaseMessage]:
    """Prior turns as role-tagged messages, then one prompt with context and question."""
    return [*history_messages(history), HumanMessage(content=build_rag_prompt(question, sources))]
