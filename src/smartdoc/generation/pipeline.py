"""Retrieval-generation pipeline: one chat turn from prompt to persisted answer.

A streamed turn moves through these steps::

    resolve conversation → emit conversationId → retrieve → persist user message
        → stream completion (emit each delta) → persist assistant message
        → emit sources

Any failure after the conversation id has been sent ends the stream with
a single ``{"error": ...}`` event. Deltas already sent stay sent, but no
assistant message is stored for a failed or cancelled turn.
"""

from __future__ import annotations

import logging
from contextlib import aclosing

from smartdoc.clients.base import CompletionClient
from smartdoc.errors import EmptyPromptError, SmartDocError
from smartdoc.events import ContentEvent, ConversationIdEvent, ErrorEvent, SourcesEvent, StreamEvent
from smartdoc.generation.conversations import ConversationStore
from smartdoc.generation.prompts import build_messages
from smartdoc.generation.retriever import Retriever
from smartdoc.models import ChatAnswer, ConversationMessage
from smartdoc.streaming import EventSink, EventStream, StreamCancelled

logger = logging.getLogger(__name__)


def _require_prompt(prompt: str) -> str:
    """Reject blank prompts; a valid prompt is used and stored as given."""
    if not prompt or not prompt.strip():
        raise EmptyPromptError()
    return prompt


class RetrievalGenerationPipeline:
    """Answers prompts from indexed documents and records each turn.

    Parameters
    ----------
    retriever:
        Similarity search over the vector index.
    completion:
        Chat model used to generate answers.
    conversations:
        Message log that receives the user and assistant messages.
    """

    def __init__(
        self,
        retriever: Retriever,
        completion: CompletionClient,
        conversations: ConversationStore,
    ) -> None:
        self._retriever = retriever
        self._completion = completion
        self.conversations = conversations

    async def answer(self, prompt: str, conversation_id: str | None = None) -> ChatAnswer:
        """Run one turn and return the full answer at once.

        Raises
        ------
        EmptyPromptError
            If *prompt* is blank; nothing is stored.
        DependencyError
            If retrieval or completion fails; the user message may
            already be stored, the assistant message is not.
        """
        question = _require_prompt(prompt)
        conversation = await self.conversations.get_or_create(conversation_id)
        sources = await self._retriever.search(question)
        await self.conversations.append(conversation.id, ConversationMessage(role="user", content=question))

        messages = build_messages(question, sources, conversation.messages)
        text = (await self._completion.complete(messages)).strip()

        await self.conversations.append(
            conversation.id, ConversationMessage(role="assistant", content=text, sources=sources)
        )
        logger.info("Answered turn in conversation %s with %d source(s)", conversation.id, len(sources))
        return ChatAnswer(conversation_id=conversation.id, message=text, sources=sources)

    def answer_stream(self, prompt: str, conversation_id: str | None = None) -> EventStream[StreamEvent]:
        """Run one turn, yielding events as the answer is generated.

        A blank prompt raises :class:`EmptyPromptError` here, before a
        stream exists. Closing the returned stream cancels the
        in-flight completion request.
        """
        question = _require_prompt(prompt)

        async def produce(sink: EventSink[StreamEvent]) -> None:
            await self._run_turn(sink, question, conversation_id)

        return EventStream(produce)

    async def _run_turn(self, sink: EventSink[StreamEvent], question: str, conversation_id: str | None) -> None:
        conversation = await self.conversations.get_or_create(conversation_id)
        await sink.emit(ConversationIdEvent(conversation_id=conversation.id))

        try:
            sources = await self._retriever.search(question)
            await self.conversations.append(conversation.id, ConversationMessage(role="user", content=question))

            messages = build_messages(question, sources, conversation.messages)
            fragments: list[str] = []
            async with aclosing(self._completion.complete_stream(messages)) as stream:
                async for fragment in stream:
                    if not fragment:
                        continue
                    fragments.append(fragment)
                    await sink.emit(ContentEvent(content=fragment))

            if sink.cancelled:
                return
            await self.conversations.append(
                conversation.id,
                ConversationMessage(role="assistant", content="".join(fragments), sources=sources),
            )
            await sink.emit(SourcesEvent(sources=sources))
            logger.info("Streamed turn in conversation %s with %d source(s)", conversation.id, len(sources))
        except StreamCancelled:
            logger.info("Client left conversation %s mid-turn; discarding partial answer", conversation.id)
            raise
        except SmartDocError as exc:
            logger.warning("Turn in conversation %s failed: %s", conversation.id, exc)
            await sink.emit(ErrorEvent(error=str(exc)))
        except Exception:
            logger.exception("Unexpected failure in conversation %s", conversation.id)
            await sink.emit(ErrorEvent(error="Failed to generate a response"))
