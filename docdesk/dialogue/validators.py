"""Validators for the booking fields.

Each returns the cleaned value, or ``None`` when the input is rejected.
"""

from __future__ import annotations

import re

MIN_NAME_LENGTH = 2

# RFC 5322-ish pattern, good enough for real-world addresses.
_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

# Optional "+", then 1–16 digits with a non-zero first digit.
_PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
_PHONE_NOISE_RE = re.compile(r"[\s\-()]")


def clean_name(value: str) -> str | None:
    name = value.strip()
    return name if len(name) >= MIN_NAME_LENGTH else None


def clean_email(value: str) -> str | None:
    email = value.strip()
    if not email or not _EMAIL_RE.match(email):
        return None
    return email.lower()


def clean_phone(value: str) -> str | None:
    phone = _PHONE_NOISE_RE.sub("", value)
    return phone if _PHONE_RE.match(phone) else None
