"""
OTP storage backends.

Records are keyed by (account key, purpose); saving a record replaces any
earlier one for the same key. ``consume`` is the only way a record is
validated and it is atomic per key: of several concurrent callers holding the
right code, exactly one gets ``OtpStatus.VALID``.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

import redis

from ..core.security import codes_match

logger = logging.getLogger(__name__)

LOCK_STRIPES = 64
EXPIRED_GRACE_SECONDS = 300

class OtpPurpose(str, Enum):
    RESET = "reset"
    VERIFY_EMAIL = "verify-email"

class OtpStatus(str, Enum):
    VALID = "valid"
    NO_SUCH_OTP = "no_such_otp"
    EXPIRED = "expired"
    MISMATCH = "mismatch"

@dataclass(frozen=True)
class OtpRecord:
    account_key: str
    purpose: OtpPurpose
    code_hash: str
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def lifetime_seconds(self) -> int:
        return int((self.expires_at - self.issued_at).total_seconds())

    def to_json(self) -> str:
        return json.dumps({
            "account_key": self.account_key,
            "purpose": self.purpose.value,
            "code_hash": self.code_hash,
            "issued_at": self.issued_at.timestamp(),
            "expires_at": self.expires_at.timestamp(),
        })

    @classmethod
    def from_json(cls, raw) -> "OtpRecord":
        data = json.loads(raw)
        return cls(
            account_key=data["account_key"],
            purpose=OtpPurpose(data["purpose"]),
            code_hash=data["code_hash"],
            issued_at=datetime.fromtimestamp(data["issued_at"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(data["expires_at"], tz=timezone.utc),
        )

def _check(record: Optional[OtpRecord], code_hash: str, now: datetime) -> OtpStatus:
    if record is None:
        return OtpStatus.NO_SUCH_OTP
    if record.is_expired(now):
        return OtpStatus.EXPIRED
    if not codes_match(record.code_hash, code_hash):
        return OtpStatus.MISMATCH
    return OtpStatus.VALID

class OtpStore(ABC):
    """Keyed OTP storage with an atomic check-and-delete"""

    @abstractmethod
    def save(self, record: OtpRecord) -> None:
        """Store the record, replacing any pending one for the same key."""

    @abstractmethod
    def get(self, account_key: str, purpose: OtpPurpose) -> Optional[OtpRecord]:
        ...

    @abstractmethod
    def delete(self, account_key: str, purpose: OtpPurpose) -> None:
        ...

    @abstractmethod
    def consume(self, account_key: str, purpose: OtpPurpose,
                code_hash: str, now: datetime) -> OtpStatus:
        """Check the code and delete the record on VALID or EXPIRED.

        A MISMATCH leaves the record in place.
        """

class InMemoryOtpStore(OtpStore):
    """Process-local store; each (account, purpose) key maps onto one of a
    fixed pool of locks, so memory does not grow with the keys seen."""

    def __init__(self, lock_stripes: int = LOCK_STRIPES):
        self._records: Dict[Tuple[str, OtpPurpose], OtpRecord] = {}
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(lock_stripes)]

    def _lock_for(self, key: Tuple[str, OtpPurpose]) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]

    def save(self, record: OtpRecord) -> None:
        key = (record.account_key, record.purpose)
        with self._lock_for(key):
            self._records[key] = record

    def get(self, account_key: str, purpose: OtpPurpose) -> Optional[OtpRecord]:
        key = (account_key, purpose)
        with self._lock_for(key):
            return self._records.get(key)

    def delete(self, account_key: str, purpose: OtpPurpose) -> None:
        key = (account_key, purpose)
        with self._lock_for(key):
            self._records.pop(key, None)

    def consume(self, account_key: str, purpose: OtpPurpose,
                code_hash: str, now: datetime) -> OtpStatus:
        key = (account_key, purpose)
        with self._lock_for(key):
            result = _check(self._records.get(key), code_hash, now)
            if result in (OtpStatus.VALID, OtpStatus.EXPIRED):
                del self._records[key]
            return result

class RedisOtpStore(OtpStore):
    """Redis-backed store; consume runs as a WATCH/MULTI/EXEC transaction"""

    def __init__(self, client: "redis.Redis", prefix: str = "otp",
                 grace_seconds: int = EXPIRED_GRACE_SECONDS):
        self.client = client
        self.prefix = prefix
        self.grace_seconds = grace_seconds

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisOtpStore":
        return cls(redis.from_url(redis_url))

    def _key(self, account_key: str, purpose: OtpPurpose) -> str:
        return f"{self.prefix}:{purpose.value}:{account_key}"

    def save(self, record: OtpRecord) -> None:
        # The key outlives expires_at by grace_seconds so consume can still
        # see the record and report EXPIRED; Redis drops it afterwards.
        ttl_seconds = max(record.lifetime_seconds, 1) + self.grace_seconds
        self.client.set(self._key(record.account_key, record.purpose),
                        record.to_json(), ex=ttl_seconds)

    def get(self, account_key: str, purpose: OtpPurpose) -> Optional[OtpRecord]:
        raw = self.client.get(self._key(account_key, purpose))
        if raw is None:
            return None
        return OtpRecord.from_json(raw)

    def delete(self, account_key: str, purpose: OtpPurpose) -> None:
        self.client.delete(self._key(account_key, purpose))

    def consume(self, account_key: str, purpose: OtpPurpose,
                code_hash: str, now: datetime) -> OtpStatus:
        name = self._key(account_key, purpose)

        def _consume(pipe) -> OtpStatus:
            raw = pipe.get(name)
            record = OtpRecord.from_json(raw) if raw is not None else None
            result = _check(record, code_hash, now)
            pipe.multi()
            if result in (OtpStatus.VALID, OtpStatus.EXPIRED):
                pipe.delete(name)
            return result

        # A concurrent write to the key aborts EXEC with WatchError and
        # redis-py re-runs _consume against the new value.
        return self.client.transaction(_consume, name, value_from_callable=True)

def create_otp_store(settings) -> OtpStore:
    backend = settings.otp_store_backend.lower()
    if backend == "memory":
        return InMemoryOtpStore()
    if backend == "redis":
        logger.info("Using Redis OTP store")
        return RedisOtpStore.from_url(settings.redis_url)
    raise ValueError(f"Unknown OTP store backend: {settings.otp_store_backend}")
