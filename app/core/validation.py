"""Field rules shared by registration, login and the availability check."""

from __future__ import annotations

import re
from typing import Mapping, Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
PHONE_RE = re.compile(r"^\+?[\d\s\-()]+$")

IDENTIFYING_FIELDS = ("email", "username", "phone")


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def check_name(value: Optional[str], label: str) -> Optional[str]:
    if _blank(value):
        return f"{label} is required"
    if len(value) < 2:
        return f"{label} must be at least 2 characters"
    return None


def check_email(value: Optional[str]) -> Optional[str]:
    if _blank(value):
        return "Email is required"
    if not EMAIL_RE.match(value):
        return "Please enter a valid email address"
    return None


def check_username(value: Optional[str]) -> Optional[str]:
    if _blank(value):
        return "Username is required"
    if len(value) < 3:
        return "Username must be at least 3 characters"
    if not USERNAME_RE.match(value):
        return "Username can only contain letters, numbers, and underscores"
    return None


def check_phone(value: Optional[str]) -> Optional[str]:
    if _blank(value):
        return "Phone number is required"
    if not PHONE_RE.match(value):
        return "Please enter a valid phone number"
    return None


def check_password(value: Optional[str]) -> Optional[str]:
    if not value:
        return "Password is required"
    if len(value) < 8:
        return "Password must be at least 8 characters"
    has_lower = any(ch.islower() for ch in value)
    has_upper = any(ch.isupper() for ch in value)
    has_digit = any(ch.isdigit() for ch in value)
    if not (has_lower and has_upper and has_digit):
        return "Password must contain at least one uppercase letter, one lowercase letter, and one number"
    return None


FIELD_CHECKS = {
    "email": check_email,
    "username": check_username,
    "phone": check_phone,
}


def validate_registration(data: Mapping[str, Optional[str]]) -> dict[str, str]:
    """Return a field-keyed map of messages; empty when the payload is valid.

    `username` is optional: it is only checked when the caller sent a
    non-empty one.
    """
    errors: dict[str, str] = {}
    checks = [
        ("firstname", check_name(data.get("firstname"), "First name")),
        ("lastname", check_name(data.get("lastname"), "Last name")),
        ("email", check_email(data.get("email"))),
        ("phone", check_phone(data.get("phone"))),
        ("password", check_password(data.get("password"))),
    ]
    if data.get("username"):
        checks.append(("username", check_username(data.get("username"))))
    for field, message in checks:
        if message:
            errors[field] = message

    if data.get("password") != data.get("confirm_password"):
        errors["confirmPassword"] = "Passwords do not match"
    return errors


def validate_login(identifier: Optional[str], password: Optional[str]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if _blank(identifier):
        errors["identifier"] = "Email, username or phone is required"
    if not password:
        errors["password"] = "Password is required"
    return errors
