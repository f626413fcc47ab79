"""Conversation store — append-only message log per conversation."""

from __future__ import annotations

import logging

from pydantic import TypeAdapter

from smartdoc.models import Conversation, ConversationMessage, ConversationSummary, utcnow
from smartdoc.storage import KeyedLocks, NullSnapshotStore, SnapshotStore, SnapshotWriter, load_records

logger = logging.getLogger(__name__)

_CONVERSATIONS = TypeAdapter(list[Conversation])


class ConversationStore:
    """In-memory conversations mirrored to a snapshot store.

    Appends to one conversation are serialised by a per-conversation
    lock; different conversations never wait on each other. Reads
    return deep copies and take no lock.
    """

    def __init__(self, store: SnapshotStore | None = None) -> None:
        self._store = store or NullSnapshotStore()
        self._conversations: dict[str, Conversation] = {}
        self._locks = KeyedLocks()
        self._writer = SnapshotWriter(self._store, "conversation")
        for conversation in _CONVERSATIONS.validate_python(load_records(self._store, "conversation")):
            self._conversations[conversation.id] = conversation
        if self._conversations:
            logger.info("Loaded %d conversation(s) from snapshot", len(self._conversations))

    def get(self, conversation_id: str) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation is not None else None

    def history(self, conversation_id: str) -> list[ConversationMessage]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return []
        return [message.model_copy(deep=True) for message in conversation.messages]

    def list(self) -> list[ConversationSummary]:
        """Summaries ordered by last activity, newest first."""
        conversations = sorted(self._conversations.values(), key=lambda c: c.updated_at, reverse=True)
        return [ConversationSummary(id=c.id, title=c.title, updated_at=c.updated_at) for c in conversations]

    async def create(self) -> Conversation:
        conversation = Conversation()
        self._conversations[conversation.id] = conversation
        await self._persist()
        logger.debug("Created conversation %s", conversation.id)
        return conversation.model_copy(deep=True)

    async def get_or_create(self, conversation_id: str | None) -> Conversation:
        """Return the conversation for *conversation_id*, or a new one if unknown."""
        if conversation_id:
            existing = self.get(conversation_id)
            if existing is not None:
                return existing
        return await self.create()

    async def append(self, conversation_id: str, message: ConversationMessage) -> bool:
        """Append *message*; returns ``False`` if the conversation is gone."""
        async with self._locks.hold(conversation_id):
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                return False
            conversation.messages.append(message.model_copy(deep=True))
            conversation.updated_at = utcnow()
            records = self._dump()
        await self._writer.save(records)
        return True

    async def delete(self, conversation_id: str) -> bool:
        async with self._locks.hold(conversation_id):
            if self._conversations.pop(conversation_id, None) is None:
                return False
            records = self._dump()
        await self._writer.save(records)
        return True

    def _dump(self) -> list[dict]:
        return _CONVERSATIONS.dump_python(list(self._conversations.values()), mode="json", by_alias=True)

    async def _persist(self) -> None:
        await self._writer.save(self._dump())
