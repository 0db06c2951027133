"""User-facing text for error kinds.

Text is rebuilt from kind + payload; rules never need to carry it. Payloads
that already hold a ``message`` (invalidNif, invalidCP ...) take precedence.
"""

from collections.abc import Mapping
from typing import Any

from signupkit.validation.types import ErrorKind

# Order in which a field's kinds are reported when only one is shown
PRECEDENCE = (
    ErrorKind.REQUIRED,
    ErrorKind.MINLENGTH,
    ErrorKind.MAXLENGTH,
    ErrorKind.EMAIL,
    ErrorKind.INVALID_NIF,
    ErrorKind.INVALID_TELEFONO,
    ErrorKind.INVALID_CP,
    ErrorKind.MIN_AGE,
    ErrorKind.EMAIL_TAKEN,
    ErrorKind.USERNAME_TAKEN,
    ErrorKind.NIF_TAKEN,
    ErrorKind.MIN_LENGTH,
    ErrorKind.NO_UPPERCASE,
    ErrorKind.NO_LOWERCASE,
    ErrorKind.NO_NUMBER,
    ErrorKind.NO_SPECIAL,
    ErrorKind.PASSWORD_MISMATCH,
    ErrorKind.AT_LEAST_ONE_REQUIRED,
    ErrorKind.INVALID_DATE_RANGE,
)

PASSWORD_KINDS = (
    ErrorKind.REQUIRED,
    ErrorKind.MIN_LENGTH,
    ErrorKind.NO_UPPERCASE,
    ErrorKind.NO_LOWERCASE,
    ErrorKind.NO_NUMBER,
    ErrorKind.NO_SPECIAL,
)

GENERIC_MESSAGE = "Validation error"


def describe(kind: str, payload: Any = True) -> str:
    """Message for a single error kind."""
    details = payload if isinstance(payload, Mapping) else {}
    if details.get("message"):
        return str(details["message"])

    if kind == ErrorKind.REQUIRED.value:
        return "This field is required"
    if kind == ErrorKind.MINLENGTH.value:
        return f"At least {details.get('requiredLength')} characters"
    if kind == ErrorKind.MAXLENGTH.value:
        return f"At most {details.get('requiredLength')} characters"
    if kind == ErrorKind.EMAIL.value:
        return "Invalid email format"
    if kind == ErrorKind.MIN_LENGTH.value:
        return f"At least {details.get('required', 8)} characters"
    if kind == ErrorKind.NO_UPPERCASE.value:
        return "Must contain at least one uppercase letter"
    if kind == ErrorKind.NO_LOWERCASE.value:
        return "Must contain at least one lowercase letter"
    if kind == ErrorKind.NO_NUMBER.value:
        return "Must contain at least one number"
    if kind == ErrorKind.NO_SPECIAL.value:
        return "Must contain at least one special character (!@#$%...)"
    if kind == ErrorKind.INVALID_NIF.value:
        return "Invalid national ID"
    if kind == ErrorKind.INVALID_TELEFONO.value:
        return "Invalid phone number (e.g. 612345678)"
    if kind == ErrorKind.INVALID_CP.value:
        return "Invalid postal code"
    if kind == ErrorKind.MIN_AGE.value:
        return f"You must be at least {details.get('required')} years old"
    if kind == ErrorKind.PASSWORD_MISMATCH.value:
        return "Passwords do not match"
    if kind == ErrorKind.AT_LEAST_ONE_REQUIRED.value:
        fields = ", ".join(details.get("fields", []))
        return f"At least one of these is required: {fields}" if fields else "At least one value is required"
    if kind == ErrorKind.INVALID_DATE_RANGE.value:
        return "End date must be after start date"
    if kind == ErrorKind.EMAIL_TAKEN.value:
        return "This email is already registered"
    if kind == ErrorKind.USERNAME_TAKEN.value:
        return "This username is not available"
    if kind == ErrorKind.NIF_TAKEN.value:
        return "This national ID is already registered"
    return GENERIC_MESSAGE


def first_message(errors: Mapping[str, Any] | None) -> str:
    """The single most relevant message for a field, or "" when valid."""
    if not errors:
        return ""
    for kind in PRECEDENCE:
        if kind.value in errors:
            return describe(kind.value, errors[kind.value])
    kind = next(iter(errors))
    return describe(kind, errors[kind])


def password_messages(errors: Mapping[str, Any] | None) -> list[str]:
    """One message per fired password kind, in checklist order."""
    if not errors:
        return []
    return [
        describe(kind.value, errors[kind.value])
        for kind in PASSWORD_KINDS
        if kind.value in errors
    ]


def all_messages(errors: Mapping[str, Any] | None) -> list[str]:
    if not errors:
        return []
    return [describe(kind, payload) for kind, payload in errors.items()]
