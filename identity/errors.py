# identity/errors.py
from typing import Optional


class IdentityError(Exception):
    """Base class for every failure raised by the verification and contacts core"""


class InvalidInput(IdentityError, ValueError):
    """Caller-correctable input problem, rejected before any store access"""


class PartialSelectionInvalid(InvalidInput):
    """An unregistered contact was selected or submitted for an invite"""

    def __init__(self, message: str, contact_ids=()):
        super().__init__(message)
        self.contact_ids = tuple(contact_ids)


class InvalidOrExpired(IdentityError):
    """
    Redemption failed.

    Wrong, expired, superseded and already used codes all end up here; the
    cause is intentionally not exposed.
    """

    def __init__(self, message: str = "Invalid or expired verification code"):
        super().__init__(message)


class Conflict(IdentityError):
    """A conditional write lost to a concurrent writer or hit a uniqueness rule"""


class ResendCooldownActive(IdentityError):
    """A new code was requested before the resend cooldown elapsed"""

    def __init__(self, retry_after: int, message: Optional[str] = None):
        super().__init__(message or f"A new code can be requested in {retry_after}s")
        self.retry_after = retry_after


class AccountNotFound(IdentityError):
    """No registered user owns the given email"""


class DeliveryFailed(IdentityError):
    """
    The code sender could not deliver a code.

    The code stays stored and its issuance still starts the resend cooldown.
    """


class ServiceUnavailable(IdentityError):
    """A backing collaborator failed or timed out; not retried by the core"""


class StoreUnavailable(ServiceUnavailable):
    """The code store failed"""


class DirectoryUnavailable(ServiceUnavailable):
    """The user directory failed"""
