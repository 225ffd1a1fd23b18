# tests/test_normalization.py

import pytest

from identity.utils.normalization import (
    is_valid_email,
    normalize_email,
    normalize_phone,
    sanitize_code,
    unique_normalized,
)


def test_normalize_email():
    assert normalize_email("  Foo@Bar.COM ") == "foo@bar.com"
    assert normalize_email(None) == ""


def test_normalize_phone():
    assert normalize_phone("+55 (11) 9999-0000") == "551199990000"
    assert normalize_phone("ext.") == ""
    assert normalize_phone(None) == ""


@pytest.mark.parametrize("raw,expected", [
    ("123456", "123456"),
    ("123 456", "123456"),
    ("12-34-56-78", "123456"),
    ("abc", ""),
    (None, ""),
])
def test_sanitize_code(raw, expected):
    assert sanitize_code(raw) == expected


@pytest.mark.parametrize("email,valid", [
    ("ana@x.com", True),
    ("  ana@x.com ", True),
    ("ana@x", False),
    ("ana x@y.com", False),
    ("", False),
    (None, False),
])
def test_is_valid_email(email, valid):
    assert is_valid_email(email) is valid


def test_unique_normalized_keeps_first_occurrence():
    assert unique_normalized(["B@x.com", "a@x.com", "b@X.com", ""], normalize_email) == ("b@x.com", "a@x.com")
