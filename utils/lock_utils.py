"""
Per-key locks used to serialize work on one person or one checkpoint.

Two backends:
  * ``local``  - threading locks keyed by name, valid inside one process.
  * ``redis``  - ``redis`` distributed locks, valid across API workers.

Database constraints (partial unique indexes, conditional updates) still
guard the invariants; the locks keep well-behaved callers from ever
tripping them.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

import redis
from redis.exceptions import LockError, RedisError

from utils.exceptions import StorageError, StorageTimeoutError

logger = logging.getLogger(__name__)


def person_key(dni: str) -> str:
    return f"person:{dni}"


def checkpoint_key(checkpoint: str) -> str:
    return f"checkpoint:{checkpoint}"


def guard_key(guard_id: str) -> str:
    return f"guard:{guard_id}"


class KeyLockManager:
    """Base class: acquire every key in sorted order, release in reverse."""

    def __init__(self, wait_seconds: float = 5.0, lease_seconds: float = 10.0):
        self.wait_seconds = wait_seconds
        self.lease_seconds = lease_seconds

    def _acquire(self, key: str):
        raise NotImplementedError

    def _release(self, key: str, handle) -> None:
        raise NotImplementedError

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        held = []
        try:
            for key in sorted(set(keys)):
                held.append((key, self._acquire(key)))
            yield
        finally:
            for key, handle in reversed(held):
                self._release(key, handle)


class LocalKeyLocks(KeyLockManager):
    def __init__(self, wait_seconds: float = 5.0, lease_seconds: float = 10.0):
        super().__init__(wait_seconds, lease_seconds)
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _acquire(self, key: str):
        lock = self._lock_for(key)
        if not lock.acquire(timeout=self.wait_seconds):
            logger.warning(f"⏳ Timed out waiting for lock {key}")
            raise StorageTimeoutError(f"Timed out waiting for lock on {key}", key=key)
        return lock

    def _release(self, key: str, handle) -> None:
        handle.release()


class RedisKeyLocks(KeyLockManager):
    def __init__(self, client: redis.Redis, wait_seconds: float = 5.0, lease_seconds: float = 10.0):
        super().__init__(wait_seconds, lease_seconds)
        self.client = client

    def _acquire(self, key: str):
        lock = self.client.lock(
            f"lock:{key}",
            timeout=self.lease_seconds,
            blocking_timeout=self.wait_seconds,
        )
        try:
            acquired = lock.acquire()
        except RedisError as exc:
            raise StorageError(f"Lock service unavailable: {exc}", key=key) from exc
        if not acquired:
            logger.warning(f"⏳ Timed out waiting for lock {key}")
            raise StorageTimeoutError(f"Timed out waiting for lock on {key}", key=key)
        return lock

    def _release(self, key: str, handle) -> None:
        try:
            handle.release()
        except LockError:
            # lease ran out before release; another holder may already own it
            logger.warning(f"⚠️ Lock {key} expired before release")
        except RedisError:
            logger.exception(f"❌ Failed to release lock {key}")


def build_lock_manager(settings, client: Optional[redis.Redis] = None) -> KeyLockManager:
    if settings.LOCK_BACKEND == "redis":
        client = client or redis.from_url(settings.REDIS_URL, decode_responses=True)
        logger.info("🔒 Using redis per-key locks")
        return RedisKeyLocks(client, settings.LOCK_WAIT_SECONDS, settings.LOCK_TIMEOUT_SECONDS)
    return LocalKeyLocks(settings.LOCK_WAIT_SECONDS, settings.LOCK_TIMEOUT_SECONDS)
