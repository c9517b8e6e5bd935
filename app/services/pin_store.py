# app/services/pin_store.py
"""
Persistence for outstanding PIN records, keyed by email.

The policy in ``pin_verification`` never stores anything. A verification
attempt is a read-validate-increment-write sequence, and two concurrent
attempts that both read ``attempts = k`` would each write ``k + 1`` and hand
out a free guess. Every store therefore exposes ``lock(key)``, and callers
run the whole sequence inside it.
"""
import logging
import math
from contextlib import contextmanager
from typing import Optional

import redis
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.redis import redis_client
from app.models.user import User
from app.services.pin_verification import PINRecord, current_time_ms

logger = logging.getLogger(__name__)


class PINStoreUnavailable(Exception):
    """The backing store could not be reached."""


class PINStore:
    def get(self, key: str) -> Optional[PINRecord]:
        raise NotImplementedError

    def save(self, key: str, record: PINRecord) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    @contextmanager
    def lock(self, key: str):
        yield


class DatabasePINStore(PINStore):
    """Keeps the record on the user row, in ``User.pin_verification``."""

    def __init__(self, db: Session):
        self.db = db

    def _get_user(self, key: str, for_update: bool = False) -> Optional[User]:
        # populate_existing: a User already in the identity map must not shadow
        # what another session committed before the lock was taken
        query = self.db.query(User).filter(User.email == key).populate_existing()
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get(self, key: str) -> Optional[PINRecord]:
        user = self._get_user(key)
        if user is None or not user.pin_verification:
            return None
        return PINRecord.model_validate(user.pin_verification)

    def save(self, key: str, record: PINRecord) -> None:
        user = self._get_user(key)
        if user is None:
            raise KeyError(f"No user registered for {key}")
        user.pin_verification = record.to_store()
        self.db.commit()

    def delete(self, key: str) -> None:
        user = self._get_user(key)
        if user is None:
            return
        user.pin_verification = None
        self.db.commit()

    @contextmanager
    def lock(self, key: str):
        # Row lock lasts until the next commit (save/delete) or rollback.
        # SQLite ignores FOR UPDATE and serializes writers on its own.
        self._get_user(key, for_update=True)
        try:
            yield
        except Exception:
            if self.db.in_transaction():
                self.db.rollback()
            raise


class RedisPINStore(PINStore):
    """Keeps the record as JSON under ``pin:<key>``, expiring with the PIN."""

    KEY_PREFIX = "pin:"
    LOCK_PREFIX = "pin-lock:"

    def __init__(self, client, lock_timeout: int = 5):
        self.client = client
        self.lock_timeout = lock_timeout

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    def get(self, key: str) -> Optional[PINRecord]:
        try:
            raw = self.client.get(self._key(key))
        except redis.RedisError as e:
            logger.error(f"Redis get error for PIN record: {e}")
            raise PINStoreUnavailable("PIN store unavailable") from e
        if not raw:
            return None
        return PINRecord.model_validate_json(raw)

    def save(self, key: str, record: PINRecord) -> None:
        ttl_seconds = max(1, math.ceil((record.expiry_time - current_time_ms()) / 1000))
        try:
            self.client.setex(
                self._key(key), ttl_seconds, record.model_dump_json(by_alias=True)
            )
        except redis.RedisError as e:
            logger.error(f"Redis set error for PIN record: {e}")
            raise PINStoreUnavailable("PIN store unavailable") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            logger.error(f"Redis delete error for PIN record: {e}")
            raise PINStoreUnavailable("PIN store unavailable") from e

    @contextmanager
    def lock(self, key: str):
        lock = self.client.lock(
            f"{self.LOCK_PREFIX}{key}",
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_timeout,
        )
        try:
            acquired = lock.acquire()
        except redis.RedisError as e:
            logger.error(f"Redis lock error for PIN record: {e}")
            raise PINStoreUnavailable("PIN store unavailable") from e
        if not acquired:
            raise PINStoreUnavailable("PIN verification is busy, try again")
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError as e:
                # Lock expired while held; the next holder already owns it
                logger.warning(f"PIN lock for {key} released late: {e}")


def get_pin_store(db: Session) -> PINStore:
    """Pick the store configured by ``PIN_STORE_BACKEND``."""
    backend = settings.PIN_STORE_BACKEND.lower()
    if backend == "redis":
        client = redis_client.get_client()
        if client is None:
            raise PINStoreUnavailable("Redis is not available")
        return RedisPINStore(client)
    if backend == "database":
        return DatabasePINStore(db)
    raise ValueError(f"Unknown PIN_STORE_BACKEND: {settings.PIN_STORE_BACKEND}")
