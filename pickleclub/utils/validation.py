"""
Input validation and sanitization for member-entered profile data.
"""

import re

from pickleclub.models.domain.membership_domain import PURCHASABLE_MEMBERSHIPS

_PHONE_RE = re.compile(r"^\+?[1-9]\d{1,14}$")
_PHONE_FORMATTING_RE = re.compile(r"[\s\-()]")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NAME_RE = re.compile(r"^[a-zA-ZÀ-ÿ\s\-']+$")
_UNSAFE_CHARS_RE = re.compile(r"[<>\"'&]")
_WHITESPACE_RE = re.compile(r"\s+")


def validate_phone(phone: str) -> bool:
    """E.164-style number; spaces, dashes and parentheses are ignored."""
    return bool(_PHONE_RE.match(_PHONE_FORMATTING_RE.sub("", phone)))


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def validate_name(name: str) -> bool:
    stripped = name.strip()
    return bool(_NAME_RE.match(name)) and 2 <= len(stripped) <= 50


def sanitize_string(value: str, max_length: int = 255) -> str:
    cleaned = _UNSAFE_CHARS_RE.sub("", value)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()[:max_length]


def sanitize_phone(phone: str) -> str:
    return re.sub(r"[^\d+\-()\s]", "", phone).strip()


def validate_membership_type(name: str) -> bool:
    return name in PURCHASABLE_MEMBERSHIPS
