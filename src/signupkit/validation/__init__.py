"""signupkit validation engine.

- Field rules: ``(value) -> ErrorSet | None``
- Cross-field rules: record-level rules over several fields
- Messages: text rebuilt from error kind and payload

The rule registry lives in ``signupkit.validation.registry`` and is imported
explicitly, since it depends on the async check definitions.

Usage:
    from signupkit.validation import rules, compose

    check = compose(rules.required(), rules.nif())
    check("12345678Z")  # None
"""

from signupkit.validation import rules
from signupkit.validation.cross_field import (
    CrossFieldRule,
    at_least_one_required,
    date_range,
    password_match,
)
from signupkit.validation.messages import (
    describe,
    first_message,
    password_messages,
)
from signupkit.validation.types import (
    ErrorKind,
    ErrorSet,
    FieldRule,
    compose,
    merge_errors,
)

__all__ = [
    # Types
    "ErrorKind",
    "ErrorSet",
    "FieldRule",
    "compose",
    "merge_errors",
    # Rules
    "rules",
    "CrossFieldRule",
    "at_least_one_required",
    "date_range",
    "password_match",
    # Messages
    "describe",
    "first_message",
    "password_messages",
]
