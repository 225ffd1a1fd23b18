"""Domain records shared by the verification and contacts components."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple, Union

from identity.utils.normalization import normalize_email, normalize_phone, unique_normalized

UserId = Union[int, str]

INVALID_OR_EXPIRED = "INVALID_OR_EXPIRED"


# --- Verification ---

@dataclass
class VerificationCode:
    """A one-time code bound to a destination identity."""

    destination: str
    code: str
    issued_at: datetime
    expires_at: datetime
    used: bool = False
    id: Optional[int] = None

    def is_active(self, now: datetime) -> bool:
        return not self.used and self.expires_at > now


@dataclass(frozen=True)
class RedeemResult:
    """Outcome of a redemption attempt."""

    success: bool
    reason: Optional[str] = None
    record: Optional[VerificationCode] = None

    @classmethod
    def ok(cls, record: VerificationCode) -> "RedeemResult":
        return cls(success=True, record=record)

    @classmethod
    def invalid_or_expired(cls) -> "RedeemResult":
        return cls(success=False, reason=INVALID_OR_EXPIRED)


# --- Contacts ---

@dataclass(frozen=True)
class ContactIdentity:
    """An address-book entry as supplied by the device."""

    id: str
    display_name: Optional[str] = None
    phone_numbers: Tuple[str, ...] = ()
    emails: Tuple[str, ...] = ()

    def __post_init__(self):
        # Accept lists from callers but keep the record hashable
        object.__setattr__(self, 'phone_numbers', tuple(self.phone_numbers or ()))
        object.__setattr__(self, 'emails', tuple(self.emails or ()))

    @property
    def normalized_emails(self) -> Tuple[str, ...]:
        return unique_normalized(self.emails, normalize_email)

    @property
    def normalized_phones(self) -> Tuple[str, ...]:
        return unique_normalized(self.phone_numbers, normalize_phone)

    @property
    def is_matchable(self) -> bool:
        """True when the contact has at least one usable email or phone"""
        return bool(self.normalized_emails or self.normalized_phones)

    @property
    def label(self) -> str:
        """Readable name for lists and logs."""
        name = (self.display_name or "").strip()
        return name or "(No name)"

    @classmethod
    def from_device(cls, payload: Mapping[str, Any]) -> "ContactIdentity":
        """
        Build a contact from an address-book payload.

        Phones and emails may be given either as plain strings or as the
        ``{"number": ...}`` / ``{"email": ...}`` objects device contact APIs
        return.
        """
        phones = [
            entry.get("number") if isinstance(entry, Mapping) else entry
            for entry in payload.get("phoneNumbers") or []
        ]
        emails = [
            entry.get("email") if isinstance(entry, Mapping) else entry
            for entry in payload.get("emails") or []
        ]
        return cls(
            id=str(payload.get("id", "")),
            display_name=payload.get("name"),
            phone_numbers=tuple(p for p in phones if p),
            emails=tuple(e for e in emails if e),
        )


@dataclass(frozen=True)
class DirectoryUser:
    """A registered account, read-only to the core."""

    id: UserId
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)

    @property
    def normalized_phone(self) -> str:
        return normalize_phone(self.phone)


@dataclass(frozen=True)
class MatchResult:
    """A contact annotated with its directory match, if any."""

    contact: ContactIdentity
    is_registered: bool = False
    matched_user_id: Optional[UserId] = None
    matched_user_name: Optional[str] = None
    matched_by: Optional[str] = None
    ambiguous: bool = False

    @property
    def display_name(self) -> Optional[str]:
        return self.contact.display_name

    @property
    def label(self) -> str:
        return self.contact.label

    @classmethod
    def unregistered(cls, contact: ContactIdentity) -> "MatchResult":
        return cls(contact=contact)

    def with_match(self, user: DirectoryUser, matched_by: str, ambiguous: bool) -> "MatchResult":
        return replace(
            self,
            is_registered=True,
            matched_user_id=user.id,
            matched_user_name=user.name,
            matched_by=matched_by,
            ambiguous=ambiguous,
        )


@dataclass(frozen=True)
class InviteResult:
    """Memberships written for a group in one batch."""

    group_id: Union[int, str]
    user_ids: Tuple[UserId, ...] = field(default_factory=tuple)

    @property
    def count(self) -> int:
        return len(self.user_ids)
