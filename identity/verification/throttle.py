# identity/verification/throttle.py
import math
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

import redis

from identity.config import REDIS_URL, RESEND_COOLDOWN_SECONDS
from identity.errors import ResendCooldownActive
from identity.interfaces import CodeStore
from identity.utils.logging_config import log_context, mask

# Import the verification logger
from . import logger


def seconds_until_resend(
        last_issued_at: Optional[datetime],
        now: datetime,
        cooldown: int = RESEND_COOLDOWN_SECONDS
) -> int:
    """
    Whole seconds the caller still has to wait before asking for a new code.

    Evaluated on demand (e.g. on every render tick of a countdown); there is
    no timer behind it.
    """
    if last_issued_at is None:
        return 0
    remaining = (last_issued_at + timedelta(seconds=cooldown) - now).total_seconds()
    if remaining <= 0:
        return 0
    return int(math.ceil(remaining))


def can_resend(
        last_issued_at: Optional[datetime],
        now: datetime,
        cooldown: int = RESEND_COOLDOWN_SECONDS
) -> bool:
    return seconds_until_resend(last_issued_at, now, cooldown) == 0


class ResendThrottle(ABC):
    """
    Cooldown between two issuances for the same destination.

    Subclasses decide where the last issuance time lives.
    """

    logger = logger

    def __init__(self, cooldown: int = RESEND_COOLDOWN_SECONDS):
        self.cooldown = cooldown

    @abstractmethod
    def last_issued_at(self, destination: str) -> Optional[datetime]:
        """
        Returns:
            Time of the latest issuance for the destination, or None
        """
        pass

    @abstractmethod
    def record_issue(self, destination: str, issued_at: datetime) -> None:
        """Remember an issuance so the next check sees it"""
        pass

    def retry_after(self, destination: str, now: datetime) -> int:
        return seconds_until_resend(self.last_issued_at(destination), now, self.cooldown)

    def can_resend(self, destination: str, now: datetime) -> bool:
        return self.retry_after(destination, now) == 0

    def check(self, destination: str, now: datetime) -> None:
        """
        Raises:
            ResendCooldownActive: the cooldown for this destination is running
        """
        retry_after = self.retry_after(destination, now)
        if retry_after > 0:
            with log_context(self.logger, destination=mask(destination)):
                self.logger.warning("Resend requested during cooldown", extra={
                    'retry_after': retry_after
                })
            raise ResendCooldownActive(retry_after)

    def claim(self, destination: str, now: datetime) -> None:
        """
        Check the cooldown and start a new one for this issuance.

        Only atomic when the caller serializes issuances for the destination;
        subclasses with a shared backend override it.

        Raises:
            ResendCooldownActive: the cooldown for this destination is running
        """
        self.check(destination, now)
        self.record_issue(destination, now)

    def release(self, destination: str) -> None:
        """Undo a claim whose issuance never got stored"""
        pass


class StoreResendThrottle(ResendThrottle):
    """Reads the last issuance straight from the code store"""

    def __init__(self, store: CodeStore, cooldown: int = RESEND_COOLDOWN_SECONDS):
        super().__init__(cooldown)
        self.store = store

    def last_issued_at(self, destination: str) -> Optional[datetime]:
        return self.store.last_issued_at(destination)

    def record_issue(self, destination: str, issued_at: datetime) -> None:
        # The inserted code record already carries the issuance time
        pass


class RedisResendThrottle(ResendThrottle):
    """
    Keeps the last issuance per destination in Redis.

    Keys expire together with the cooldown, so a missing key means a resend
    is allowed.
    """

    def __init__(
            self,
            redis_url: str = REDIS_URL,
            prefix: str = 'resend',
            cooldown: int = RESEND_COOLDOWN_SECONDS
    ):
        super().__init__(cooldown)
        self.redis = redis.from_url(redis_url)
        self.prefix = prefix
        logger.info(f"Initialized RedisResendThrottle with prefix '{prefix}'")

    def _get_key(self, destination: str) -> str:
        return f"{self.prefix}:{destination}"

    def last_issued_at(self, destination: str) -> Optional[datetime]:
        data = self.redis.get(self._get_key(destination))
        if not data:
            return None
        if isinstance(data, bytes):
            data = data.decode()
        try:
            return datetime.fromisoformat(data)
        except ValueError:
            logger.warning("Invalid timestamp in Redis", extra={
                'destination': mask(destination)
            })
            return None

    def record_issue(self, destination: str, issued_at: datetime) -> None:
        self.redis.setex(self._get_key(destination), self.cooldown, issued_at.isoformat())

    def claim(self, destination: str, now: datetime) -> None:
        # SET NX EX: only one process can start the cooldown
        acquired = self.redis.set(
            self._get_key(destination), now.isoformat(), nx=True, ex=self.cooldown
        )
        if acquired:
            return

        # The key may have expired between SET and GET; still a lost claim
        retry_after = max(self.retry_after(destination, now), 1)
        with log_context(self.logger, destination=mask(destination)):
            self.logger.warning("Resend requested during cooldown", extra={
                'retry_after': retry_after
            })
        raise ResendCooldownActive(retry_after)

    def release(self, destination: str) -> None:
        self.redis.delete(self._get_key(destination))
