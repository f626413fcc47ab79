"""Unit tests for the retrieval-generation pipeline.

Covers event ordering of a streamed turn, persistence of both messages,
the error and cancellation policies, and the non-streaming variant.
"""

from __future__ import annotations

import asyncio

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from smartdoc.errors import DependencyError, EmptyPromptError
from smartdoc.events import ContentEvent, ConversationIdEvent, ErrorEvent, SourcesEvent
from smartdoc.generation.prompts import NO_CONTEXT_PLACEHOLDER


@pytest.mark.asyncio
async def test_stream_turn_event_order_and_persistence(generation, conversations) -> None:
    events = await generation.answer_stream("What is a pod?").collect()

    assert isinstance(events[0], ConversationIdEvent)
    assert events[1:3] == [ContentEvent(content="Hello "), ContentEvent(content="world")]
    assert isinstance(events[3], SourcesEvent)
    assert len(events) == 4
    assert [s.id for s in events[3].sources] == ["doc-a-chunk-0", "doc-b-chunk-3"]

    conversation = conversations.get(events[0].conversation_id)
    user, assistant = conversation.messages
    assert (user.role, user.content) == ("user", "What is a pod?")
    assert (assistant.role, assistant.content) == ("assistant", "Hello world")
    assert assistant.sources == events[3].sources


@pytest.mark.asyncio
async def test_stream_failure_after_first_fragment(generation, completion, conversations) -> None:
    completion.fail_after = 1

    events = await generation.answer_stream("What is a pod?").collect()

    assert isinstance(events[0], ConversationIdEvent)
    assert events[1] == ContentEvent(content="Hello ")
    assert isinstance(events[2], ErrorEvent)
    assert "connection reset" in events[2].error
    assert len(events) == 3
    assert not any(isinstance(e, SourcesEvent) for e in events)

    messages = conversations.get(events[0].conversation_id).messages
    assert [m.role for m in messages] == ["user"]


@pytest.mark.asyncio
async def test_retrieval_failure_reports_error_after_conversation_id(generation, index, conversations) -> None:
    index.fail_query = True

    events = await generation.answer_stream("anything").collect()

    assert [type(e) for e in events] == [ConversationIdEvent, ErrorEvent]
    assert conversations.get(events[0].conversation_id).messages == []


@pytest.mark.asyncio
async def test_existing_conversation_is_reused_with_history(generation, completion, conversations) -> None:
    first = await generation.answer_stream("First question").collect()
    conversation_id = first[0].conversation_id

    second = await generation.answer_stream("Follow-up", conversation_id).collect()

    assert second[0].conversation_id == conversation_id
    assert len(conversations.get(conversation_id).messages) == 4
    prompt = completion.prompts[-1]
    assert prompt[0] == HumanMessage(content="First question")
    assert prompt[1] == AIMessage(content="Hello world")
    assert "Follow-up" in prompt[-1].content
    assert len(prompt) == 3


@pytest.mark.asyncio
async def test_unknown_conversation_id_starts_a_new_one(generation, conversations) -> None:
    events = await generation.answer_stream("Hi", "does-not-exist").collect()

    assert events[0].conversation_id != "does-not-exist"
    assert conversations.get(events[0].conversation_id) is not None


@pytest.mark.asyncio
async def test_empty_retrieval_uses_placeholder(generation, index, completion) -> None:
    index.hits = []

    events = await generation.answer_stream("Anything indexed?").collect()

    assert events[-1] == SourcesEvent(sources=[])
    assert NO_CONTEXT_PLACEHOLDER in completion.prompts[-1][-1].content


@pytest.mark.asyncio
async def test_empty_fragments_are_not_emitted(generation, completion) -> None:
    completion.fragments = ["", "Hi", "", "!"]

    events = await generation.answer_stream("Say hi").collect()

    assert [e.content for e in events if isinstance(e, ContentEvent)] == ["Hi", "!"]


def test_blank_prompt_is_rejected_before_streaming(generation, conversations) -> None:
    with pytest.raises(EmptyPromptError):
        generation.answer_stream("   ")
    assert conversations.list() == []


@pytest.mark.asyncio
async def test_prompt_is_retrieved_and_stored_as_given(generation, conversations, embeddings, index) -> None:
    prompt = "  What is a pod?\n"

    events = await generation.answer_stream(prompt).collect()

    user = conversations.get(events[0].conversation_id).messages[0]
    assert user.content == prompt
    assert index.queries[-1][0] == embeddings._vector(prompt)


@pytest.mark.asyncio
async def test_closing_the_stream_cancels_generation(generation, completion, conversations) -> None:
    completion.gate = asyncio.Event()
    stream = generation.answer_stream("Long answer please")

    conversation_id = (await stream.__anext__()).conversation_id
    assert await stream.__anext__() == ContentEvent(content="Hello ")
    await stream.aclose()

    assert completion.closed
    assert stream.cancelled
    messages = conversations.get(conversation_id).messages
    assert [m.role for m in messages] == ["user"]
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


# ── non-streaming variant ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_answer_returns_full_message_and_sources(generation, conversations) -> None:
    result = await generation.answer("What is a pod?")

    assert result.message == "Hello world"
    assert len(result.sources) == 2
    messages = conversations.get(result.conversation_id).messages
    assert [m.content for m in messages] == ["What is a pod?", "Hello world"]


@pytest.mark.asyncio
async def test_answer_failure_persists_no_assistant_message(generation, completion, conversations) -> None:
    completion.fail_after = 0

    with pytest.raises(DependencyError):
        await generation.answer("What is a pod?")

    (summary,) = conversations.list()
    assert [m.role for m in conversations.get(summary.id).messages] == ["user"]


@pytest.mark.asyncio
async def test_answer_rejects_blank_prompt(generation) -> None:
    with pytest.raises(EmptyPromptError):
        await generation.answer("")
