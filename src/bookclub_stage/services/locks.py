"""Per-key serialization primitives."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Generic, TypeVar

LockT = TypeVar("LockT")


@dataclass
class _Entry(Generic[LockT]):
    lock: LockT
    holders: int = 0


class KeyedLocks(Generic[LockT]):
    """Lock per key, kept only while someone holds or waits for it.

    Different keys never contend. Every caller of one key shares a single lock
    object as long as any of them is inside or queued for its critical section;
    the entry is dropped when the last one leaves.
    """

    def __init__(self, factory: Callable[[], LockT]) -> None:
        self._factory = factory
        self._entries: dict[str, _Entry[LockT]] = {}
        self._guard = Lock()

    def _checkout(self, key: str) -> LockT:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry(self._factory())
            entry.holders += 1
            return entry.lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class ThreadKeyedLocks(KeyedLocks[Lock]):
    """Keyed ``threading.Lock`` registry used as ``with locks(key):``."""

    def __init__(self) -> None:
        super().__init__(Lock)

    @contextmanager
    def __call__(self, key: str) -> Iterator[None]:
        lock = self._checkout(key)
        try:
            with lock:
                yield
        finally:
            self._checkin(key)


class TaskKeyedLocks(KeyedLocks[asyncio.Lock]):
    """Keyed ``asyncio.Lock`` registry used as ``async with locks(key):``."""

    def __init__(self) -> None:
        super().__init__(asyncio.Lock)

    @asynccontextmanager
    async def __call__(self, key: str) -> AsyncIterator[None]:
        lock = self._checkout(key)
        try:
            async with lock:
                yield
        finally:
            self._checkin(key)


def thread_locks() -> ThreadKeyedLocks:
    """Registry for synchronous critical sections (store writes and reads)."""
    return ThreadKeyedLocks()


def task_locks() -> TaskKeyedLocks:
    """Registry for critical sections that span an ``await`` (transitions)."""
    return TaskKeyedLocks()
