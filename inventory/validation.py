"""
Field validation for form-style input (customers, materials, imports).

Every check returns a ValidationResult instead of raising so that several
checks can be merged with validate_multiple() and reported together.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from inventory.errors import ValidationFailed

TEXT_MAX_LENGTH = 255
EMAIL_MAX_LENGTH = 254

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^(\+90|0)?5[0-9]{9}$")   # Turkish mobile numbers


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)

    def raise_for_errors(self) -> None:
        if not self.is_valid:
            raise ValidationFailed(self.errors)


def _result(errors: list[str]) -> ValidationResult:
    return ValidationResult(is_valid=not errors, errors=errors)


def _blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


def validate_email(email: Optional[str], required: bool = False) -> ValidationResult:
    if _blank(email):
        return _result(["Email is required"] if required else [])
    errors = []
    if len(email) > EMAIL_MAX_LENGTH:
        errors.append(f"Email must be at most {EMAIL_MAX_LENGTH} characters")
    if not EMAIL_RE.match(email):
        errors.append("Invalid email format")
    return _result(errors)


def validate_phone(phone: Optional[str], required: bool = False) -> ValidationResult:
    if _blank(phone):
        return _result(["Phone number is required"] if required else [])
    if not PHONE_RE.match(re.sub(r"\s", "", phone)):
        return _result(["Invalid phone number format"])
    return _result([])


def validate_required(value: Any, field_name: str) -> ValidationResult:
    if not value or (isinstance(value, str) and value.strip() == ""):
        return _result([f"{field_name} is required"])
    return _result([])


def validate_length(
    value: Optional[str],
    min_length: Optional[int] = None,
    max_length: Optional[int] = TEXT_MAX_LENGTH,
    field_name: str = "Value",
) -> ValidationResult:
    value = value or ""
    errors = []
    if min_length and len(value) < min_length:
        errors.append(f"{field_name}: minimum length is {min_length}")
    if max_length and len(value) > max_length:
        errors.append(f"{field_name}: maximum length is {max_length}")
    return _result(errors)


def validate_positive_number(value: Any, field_name: str) -> ValidationResult:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return _result([f"{field_name} must be a positive number"])
    if math.isnan(number) or number < 0:
        return _result([f"{field_name} must be a positive number"])
    return _result([])


def validate_multiple(results: Iterable[ValidationResult]) -> ValidationResult:
    errors: list[str] = []
    for result in results:
        if not result.is_valid:
            errors.extend(result.errors)
    return _result(errors)


def validate_customer(name, email, phone) -> ValidationResult:
    return validate_multiple([
        validate_required(name, "Customer name"),
        validate_length(name, field_name="Customer name"),
        validate_email(email),
        validate_phone(phone),
    ])
