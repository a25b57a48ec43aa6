"""
Exclusive per-doctor locks.

A booking holds the lock for its doctor from the conflict checks until the
new appointment is committed, so a second booking for the same doctor only
reads the schedule after the first one is durable.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator
import logging
import threading

import redis
from redis.exceptions import LockError

from .exceptions import TransientUnavailable

logger = logging.getLogger(__name__)


class DoctorLockTable(ABC):
    """Exclusive lock per doctor id."""

    @abstractmethod
    def hold(self, doctor_id: int):
        """Context manager owning the doctor's lock for the duration of the block."""


class LocalLockTable(DoctorLockTable):
    """In-process mutex table keyed by doctor id.

    Only correct when every booking for a given doctor is served by this
    process.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._locks: Dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, doctor_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(doctor_id)
            if lock is None:
                lock = self._locks[doctor_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, doctor_id: int) -> Iterator[None]:
        lock = self._lock_for(doctor_id)
        if not lock.acquire(timeout=self.timeout):
            logger.error(f"Timed out waiting for booking lock on doctor {doctor_id}")
            raise TransientUnavailable()
        try:
            yield
        finally:
            lock.release()


class RedisLockTable(DoctorLockTable):
    """Distributed lock per doctor id backed by redis-py's ``Lock``."""

    key_prefix = "booking:doctor:"

    def __init__(self, client: redis.Redis, timeout: float = 30.0, lease: float = 60.0):
        self.client = client
        self.timeout = timeout
        self.lease = lease

    @contextmanager
    def hold(self, doctor_id: int) -> Iterator[None]:
        lock = self.client.lock(
            f"{self.key_prefix}{doctor_id}",
            timeout=self.lease,
            blocking_timeout=self.timeout,
        )
        try:
            acquired = lock.acquire()
        except redis.RedisError as e:
            logger.error(f"Redis lock for doctor {doctor_id} unavailable: {str(e)}")
            raise TransientUnavailable() from e

        if not acquired:
            logger.error(f"Timed out waiting for booking lock on doctor {doctor_id}")
            raise TransientUnavailable()

        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # Lease ran out while the block was still running; another
                # holder may have entered concurrently
                logger.error(
                    f"Booking lock for doctor {doctor_id} expired before release; "
                    f"exclusivity was lost, raise LOCK_LEASE_SECONDS above {self.lease}s"
                )


def build_lock_table(
    backend: str,
    timeout: float,
    client: redis.Redis = None,
    lease: float = 60.0,
) -> DoctorLockTable:
    """Create the lock table for the configured backend."""
    if backend == "local":
        return LocalLockTable(timeout=timeout)
    if backend == "redis":
        if client is None:
            raise ValueError("Redis lock backend requires a Redis client")
        return RedisLockTable(client, timeout=timeout, lease=lease)
    raise ValueError(f"Unknown lock backend: {backend}")
