"""Snapshot persistence for the registry and conversation store.

Both stores keep their records in memory and mirror the full set to a
:class:`SnapshotStore` after every mutation. Saving runs in a worker
thread and is best-effort: failures are logged and never reach the
caller of the mutating operation.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class SnapshotStore(ABC):
    """Loads and saves a list of JSON-compatible records."""

    @abstractmethod
    def load_all(self) -> list[dict[str, Any]]: ...

    @abstractmethod
    def save_all(self, records: list[dict[str, Any]]) -> None: ...


class NullSnapshotStore(SnapshotStore):
    """Keeps nothing; used when no data directory is configured."""

    def load_all(self) -> list[dict[str, Any]]:
        return []

    def save_all(self, records: list[dict[str, Any]]) -> None:
        return None


class JsonSnapshotStore(SnapshotStore):
    """Stores records as a JSON array in a single file.

    Writes go to a temporary file in the same directory which then
    replaces the target, so a crash mid-write leaves the old snapshot.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load_all(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a JSON array")
        return data

    def save_all(self, records: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(records, fh, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


def snapshot_store(data_dir: str, name: str) -> SnapshotStore:
    """Return a JSON store under *data_dir*, or a null store if it is empty."""
    if not data_dir:
        return NullSnapshotStore()
    return JsonSnapshotStore(Path(data_dir) / f"{name}.json")


def load_records(store: SnapshotStore, label: str) -> list[dict[str, Any]]:
    try:
        return store.load_all()
    except Exception:
        logger.warning("Could not load %s snapshot; starting empty", label, exc_info=True)
        return []


def save_records(store: SnapshotStore, records: list[dict[str, Any]], label: str) -> None:
    try:
        store.save_all(records)
    except Exception:
        logger.warning("Could not save %s snapshot (%d records)", label, len(records), exc_info=True)


class SnapshotWriter:
    """Writes snapshots of one store from a worker thread, in call order.

    Callers dump their records synchronously and pass them to
    :meth:`save`. Snapshots are numbered when ``save`` is called, and a
    snapshot older than one already written is skipped, so the file
    never goes back to an earlier state.
    """

    def __init__(self, store: SnapshotStore, label: str) -> None:
        self.store = store
        self.label = label
        self._lock = asyncio.Lock()
        self._latest: list[dict[str, Any]] = []
        self._issued = 0
        self._written = 0

    async def save(self, records: list[dict[str, Any]]) -> None:
        self._issued += 1
        ticket = self._issued
        self._latest = records
        async with self._lock:
            if ticket <= self._written:
                return
            records, target = self._latest, self._issued
            await asyncio.to_thread(save_records, self.store, records, self.label)
            self._written = target


class KeyedLocks:
    """One :class:`asyncio.Lock` per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: defaultdict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)
