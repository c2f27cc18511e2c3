"""Concurrency helpers: keyed mutual exclusion and optimistic version checks."""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager

from .errors import ConflictError

GLOBAL_KEY = "*"


class KeyedLocks:
    """Registry handing out one lock per key.

    With ``scope="global"`` every key maps to the same lock, which serializes
    all callers system-wide. With ``scope="plan"`` callers holding different
    keys proceed in parallel while callers sharing a key are serialized.
    Locks are never evicted, so callers must only pass keys that name
    existing records (the quota ledger locks on plan ids, never on raw
    client input).
    """

    def __init__(self, scope: str = "plan") -> None:
        if scope not in ("plan", "global"):
            raise ValueError(f"unknown lock scope: {scope!r}")
        self.scope = scope
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def lock_for(self, key: Hashable) -> threading.Lock:
        k = GLOBAL_KEY if self.scope == "global" else key
        with self._guard:
            lock = self._locks.get(k)
            if lock is None:
                lock = self._locks[k] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self.lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


def check_version(current: int, expected: int | None, *, resource: str) -> None:
    """Raise ConflictError when a client-supplied version is stale.

    ``expected`` of None (or 0) means the client did not send a version.
    """
    if expected and expected != current:
        raise ConflictError("version_mismatch", resource=resource, expected=current, got=expected)


__all__ = ["KeyedLocks", "GLOBAL_KEY", "check_version"]
