# leadbot/services/validation.py
"""
Minimum-quality checks for captured lead fields.
Invalid input is a normal return value, never an exception.
"""
from __future__ import annotations

import re
from typing import Optional

from leadbot.models.lead import ValidationResult

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[A-Za-z]{2,}$")
DIGIT_RE = re.compile(r"\d")

MIN_NAME_LEN = 2
MIN_PHONE_DIGITS = 10


def validate_name(name: Optional[str]) -> ValidationResult:
    if not name or not name.strip():
        return ValidationResult.fail("Name is required")
    if len(name.strip()) < MIN_NAME_LEN:
        return ValidationResult.fail("Please enter a valid name (at least 2 characters)")
    return ValidationResult.ok()


def validate_email(email: Optional[str]) -> ValidationResult:
    if not email or not email.strip():
        return ValidationResult.fail("Email is required")
    if not EMAIL_RE.match(email.strip()):
        return ValidationResult.fail("Please enter a valid email address")
    return ValidationResult.ok()


def validate_phone(phone: Optional[str]) -> ValidationResult:
    if not phone or not phone.strip():
        return ValidationResult.fail("Phone number is required")
    if len(DIGIT_RE.findall(phone)) < MIN_PHONE_DIGITS:
        return ValidationResult.fail("Please enter a valid phone number (at least 10 digits)")
    return ValidationResult.ok()


def validate_purpose(purpose: Optional[str]) -> ValidationResult:
    if not purpose or not purpose.strip():
        return ValidationResult.fail("What type of project are you looking to build?")
    return ValidationResult.ok()


FIELD_VALIDATORS = {
    "name": validate_name,
    "email": validate_email,
    "phone": validate_phone,
    "purpose": validate_purpose,
}


def validate_field(field: str, value: Optional[str]) -> ValidationResult:
    check = FIELD_VALIDATORS.get(field)
    if check is None:
        return ValidationResult.ok()
    return check(value)

