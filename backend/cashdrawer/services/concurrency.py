# Overview: Per-shift locking and caller-side retry helpers.

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager

from ..errors import LockTimeout, ShiftError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class ShiftLockRegistry:
    """
    One exclusive lock per key (a shift id, or "context:<name>" for open).

    Locks are created on first use and dropped once no caller holds or waits
    for them, so the registry only ever contains keys that are in flight.
    Different keys never contend; the registry lock is only held long enough
    to look a key up.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: dict[str, _LockEntry] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _checkout(self, key: str) -> _LockEntry:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _LockEntry()
            entry.holders += 1
            return entry

    def _checkin(self, key: str, entry: _LockEntry) -> None:
        with self._registry_lock:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, *, operation: str | None = None, shift_id: str | None = None):
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=self.timeout):
                logger.warning("Timed out after %.1fs waiting for lock %s (%s)", self.timeout, key, operation)
                raise LockTimeout(
                    f"Timed out waiting for lock on {key}; retry the operation",
                    shift_id=shift_id,
                    operation=operation,
                )
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    @staticmethod
    def context_key(context: str) -> str:
        return f"context:{context}"


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute an engine operation with retry on retryable failures.

    Retries PersistenceFailure and LockTimeout; every other error is raised
    immediately. Callers pair this with idempotency keys so a retry racing a
    just-completed write cannot apply twice.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except ShiftError as exc:
            if not exc.retryable:
                raise
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.info("Retrying %s after %s (attempt %d/%d)", exc.operation, exc.kind, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
