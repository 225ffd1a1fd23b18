# identity/utils/normalization.py
import re
from typing import Iterable, Optional, Tuple

from identity.config import CODE_LENGTH

NON_DIGIT_REGEX = re.compile(r'\D')
EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case an email; None becomes an empty string"""
    if not email:
        return ""
    return email.strip().lower()


def normalize_phone(phone: Optional[str]) -> str:
    """Strip every non-digit character from a phone number"""
    if not phone:
        return ""
    return NON_DIGIT_REGEX.sub('', phone)


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_REGEX.match(email.strip()) is not None


def sanitize_code(raw: Optional[str]) -> str:
    """
    Reduce typed or pasted input to the digits of a verification code.

    Non-digits are dropped and anything beyond the code length is cut off,
    so "123 456" and "123-456-789" both become a 6-digit candidate.
    """
    if not raw:
        return ""
    return NON_DIGIT_REGEX.sub('', raw)[:CODE_LENGTH]


def unique_normalized(values: Iterable[Optional[str]], normalizer) -> Tuple[str, ...]:
    """Normalize values, dropping empties and repeats while keeping order"""
    seen = set()
    result = []
    for value in values:
        normalized = normalizer(value)
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return tuple(result)
