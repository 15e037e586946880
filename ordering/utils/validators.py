"""
Input validation utilities
"""
import re
from typing import Optional

_PHONE_STRIP = re.compile(r"[\s\-()/]")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_phone(phone: str) -> str:
    """Strip formatting so '+36 30 123-4567' and '+36301234567' key the same customer"""
    return _PHONE_STRIP.sub("", phone.strip())


def validate_phone(phone: Optional[str]) -> str:
    """Validate a customer phone number (digits with optional leading +)"""
    if not phone or not phone.strip():
        raise ValueError("Phone number is required")
    normalized = normalize_phone(phone)
    digits = normalized[1:] if normalized.startswith("+") else normalized
    if not digits.isdigit() or not 6 <= len(digits) <= 15:
        raise ValueError("Invalid phone number")
    return normalized


def validate_email(email: Optional[str]) -> str:
    """Validate an email address shape"""
    if not email or not email.strip():
        raise ValueError("Email address is required")
    email = email.strip()
    if not _EMAIL_RE.match(email):
        raise ValueError("Invalid email address")
    return email


def validate_name(name: Optional[str]) -> str:
    if not name or not name.strip():
        raise ValueError("Name is required")
    return name.strip()
