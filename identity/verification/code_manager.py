# identity/verification/code_manager.py
import secrets
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from identity.config import CODE_LENGTH, CODE_MAX, CODE_MIN, CODE_TTL_MINUTES
from identity.errors import Conflict, IdentityError, InvalidInput, StoreUnavailable
from identity.interfaces import CodeStore
from identity.models import RedeemResult, VerificationCode
from identity.utils.logging_config import log_context, log_operation, mask
from identity.utils.normalization import normalize_email
from identity.verification.throttle import ResendThrottle, seconds_until_resend

# Import the verification logger
from . import logger

CODE_TTL = timedelta(minutes=CODE_TTL_MINUTES)


def generate_code() -> str:
    """Uniform draw over 100000-999999"""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


class _DestinationLock:
    __slots__ = ('lock', 'holders')

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class VerificationCodeManager:
    """
    Issues and redeems one-time codes bound to a destination.

    The manager keeps no codes in memory; everything lives in the CodeStore.
    Issuances and redemptions for the same destination are serialized
    in-process. Across processes, the store's compare-and-set on `used` and
    the throttle's claim cover the rest.
    """

    logger = logger

    def __init__(
            self,
            store: CodeStore,
            throttle: Optional[ResendThrottle] = None,
            clock: Optional[Callable[[], datetime]] = None,
            code_generator: Callable[[], str] = generate_code
    ):
        self.store = store
        self.throttle = throttle
        self.clock = clock or datetime.now
        self.code_generator = code_generator
        self._locks: Dict[str, _DestinationLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _destination_lock(self, destination: str):
        """Serialize work on one destination; the entry is dropped once nobody holds or waits on it"""
        with self._locks_guard:
            entry = self._locks.get(destination)
            if entry is None:
                entry = self._locks[destination] = _DestinationLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[destination]

    @staticmethod
    def _require_destination(destination: Optional[str]) -> str:
        normalized = normalize_email(destination)
        if not normalized:
            raise InvalidInput("Destination must not be empty")
        return normalized

    def _call_store(self, description: str, func, *args):
        try:
            return func(*args)
        except IdentityError:
            raise
        except Exception as e:
            self.logger.error(f"Code store failed during {description}", exc_info=True, extra={
                'error_type': type(e).__name__
            })
            raise StoreUnavailable(f"Code store unavailable during {description}") from e

    @log_operation("issue_verification_code")
    def issue(self, destination: str) -> VerificationCode:
        """
        Create and store a fresh code for a destination.

        Args:
            destination: Email the code is bound to

        Returns:
            The stored record; delivering `code` is up to the caller

        Raises:
            InvalidInput: empty destination
            ResendCooldownActive: a throttle is configured and its cooldown is running
            StoreUnavailable: the code store failed
        """
        destination = self._require_destination(destination)

        with log_context(self.logger, destination=mask(destination)):
            with self._destination_lock(destination):
                now = self.clock()
                if self.throttle is not None:
                    self._call_store("cooldown claim", self.throttle.claim, destination, now)

                record = VerificationCode(
                    destination=destination,
                    code=self.code_generator(),
                    issued_at=now,
                    expires_at=now + CODE_TTL,
                    used=False
                )
                try:
                    record = self._call_store("insert", self.store.insert, record)
                except StoreUnavailable:
                    if self.throttle is not None:
                        self._call_store("cooldown release", self.throttle.release, destination)
                    raise

            self.logger.info("Issued verification code", extra={
                'code_id': record.id,
                'expires_at': record.expires_at.isoformat()
            })
            return record

    @log_operation("redeem_verification_code")
    def redeem(self, destination: str, submitted_code: str) -> RedeemResult:
        """
        Consume the latest active code for a destination.

        Wrong, expired, superseded, already used codes and lost races all
        produce the same INVALID_OR_EXPIRED result.

        Raises:
            InvalidInput: empty destination or a code that is not 6 digits
            StoreUnavailable: the code store failed
        """
        destination = self._require_destination(destination)
        submitted_code = (submitted_code or "").strip()
        if len(submitted_code) != CODE_LENGTH or not submitted_code.isdigit():
            raise InvalidInput(f"Verification code must be {CODE_LENGTH} digits")

        with log_context(self.logger, destination=mask(destination)):
            with self._destination_lock(destination):
                now = self.clock()
                record = self._call_store("lookup", self.store.find_latest_active, destination, now)

                if record is None or not secrets.compare_digest(record.code, submitted_code):
                    self.logger.warning("Code verification failed", extra={
                        'error': 'invalid_or_expired_code'
                    })
                    return RedeemResult.invalid_or_expired()

                try:
                    self._call_store("mark used", self.store.mark_used, record.id)
                except Conflict:
                    self.logger.warning("Code already consumed by a concurrent redemption", extra={
                        'code_id': record.id
                    })
                    return RedeemResult.invalid_or_expired()

                record.used = True
                self.logger.info("Code verification successful", extra={'code_id': record.id})
                return RedeemResult.ok(record)

    def seconds_until_resend(self, destination: str) -> int:
        """Countdown value for the caller's resend button; 0 means allowed"""
        destination = self._require_destination(destination)
        now = self.clock()
        if self.throttle is not None:
            return self._call_store("cooldown check", self.throttle.retry_after, destination, now)
        last = self._call_store("cooldown check", self.store.last_issued_at, destination)
        return seconds_until_resend(last, now)
