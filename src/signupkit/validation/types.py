"""Core types for the signupkit validation engine.

This module defines the shapes shared by every validation layer:
- Field rules: ``(value) -> ErrorSet | None``
- Cross-field rules: ``(values) -> ErrorSet | None`` over a whole record
- ErrorSet merging, so independent rules compose by union
"""

from collections.abc import Callable
from enum import Enum
from typing import Any

# kind -> payload (True or a dict of details). Empty means valid.
ErrorSet = dict[str, Any]

FieldRule = Callable[[Any], "ErrorSet | None"]


class ErrorKind(Enum):
    """Every error kind a rule or check can fire.

    The values are the identifiers used as ErrorSet keys.
    """

    REQUIRED = "required"
    MINLENGTH = "minlength"
    MAXLENGTH = "maxlength"
    EMAIL = "email"
    # Password strength
    MIN_LENGTH = "minLength"
    NO_UPPERCASE = "noUppercase"
    NO_LOWERCASE = "noLowercase"
    NO_NUMBER = "noNumber"
    NO_SPECIAL = "noSpecial"
    # National formats
    INVALID_NIF = "invalidNif"
    INVALID_TELEFONO = "invalidTelefono"
    INVALID_CP = "invalidCP"
    MIN_AGE = "minAge"
    # Cross-field
    PASSWORD_MISMATCH = "passwordMismatch"
    AT_LEAST_ONE_REQUIRED = "atLeastOneRequired"
    INVALID_DATE_RANGE = "invalidDateRange"
    # Remote availability
    EMAIL_TAKEN = "emailTaken"
    USERNAME_TAKEN = "usernameTaken"
    NIF_TAKEN = "nifTaken"


def is_empty(value: Any) -> bool:
    """Presence check used by ``required`` and the empty-input shortcut."""
    if value is None:
        return True
    if isinstance(value, str) and value == "":
        return True
    if isinstance(value, (list, dict, tuple)) and len(value) == 0:
        return True
    return False


def merge_errors(*error_sets: "ErrorSet | None") -> ErrorSet:
    """Union of every ErrorSet given.

    ``None`` and empty sets contribute nothing. When two sets fire the same
    kind the later payload is kept; the kind itself is never lost.
    """
    merged: ErrorSet = {}
    for errors in error_sets:
        if errors:
            merged.update(errors)
    return merged


def compose(*rules: FieldRule) -> FieldRule:
    """Combine field rules into one that runs all of them and merges output."""

    def composed(value: Any) -> ErrorSet | None:
        merged = merge_errors(*(rule(value) for rule in rules))
        return merged or None

    return composed


def error(kind: ErrorKind, payload: Any = True) -> ErrorSet:
    """Build a single-kind ErrorSet."""
    return {kind.value: payload}
