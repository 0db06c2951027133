"""Cross-field rules.

A cross-field rule looks at several fields of the same record at once. Its
errors belong to the enclosing record, not to any participant, and it is
re-run whenever one of its participant fields changes.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from signupkit.validation.types import ErrorKind, ErrorSet, error


@dataclass(frozen=True)
class CrossFieldRule:
    """A named record-level rule with its participant fields.

    Attributes:
        name: Identifier used for logging and for keying record errors
        fields: Field names whose changes re-trigger the rule
        check: Pure function over the record's value mapping
    """

    name: str
    fields: tuple[str, ...]
    check: Callable[[Mapping[str, Any]], "ErrorSet | None"]

    def __call__(self, values: Mapping[str, Any]) -> ErrorSet | None:
        return self.check(values)

    def watches(self, field_name: str) -> bool:
        return field_name in self.fields


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return not value


# =============================================================================
# Password Match
# =============================================================================


def password_match(password_field: str, confirm_field: str) -> CrossFieldRule:
    """Confirmation must equal the password.

    An empty confirmation is left to the confirmation field's own
    ``required`` rule.
    """

    def check(values: Mapping[str, Any]) -> ErrorSet | None:
        if password_field not in values or confirm_field not in values:
            return None
        confirm = values[confirm_field]
        if not confirm:
            return None
        if values[password_field] == confirm:
            return None
        return error(ErrorKind.PASSWORD_MISMATCH)

    return CrossFieldRule(
        name="passwordMatch",
        fields=(password_field, confirm_field),
        check=check,
    )


# =============================================================================
# At Least One Required
# =============================================================================


def at_least_one_required(*fields: str) -> CrossFieldRule:
    """At least one of ``fields`` must hold a non-blank value."""
    names = tuple(fields)

    def check(values: Mapping[str, Any]) -> ErrorSet | None:
        if any(not _blank(values.get(name)) for name in names):
            return None
        return error(ErrorKind.AT_LEAST_ONE_REQUIRED, {"fields": list(names)})

    return CrossFieldRule(name="atLeastOneRequired", fields=names, check=check)


# =============================================================================
# Date Range
# =============================================================================


def _as_date(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        return None


def date_range(start_field: str, end_field: str) -> CrossFieldRule:
    """End date must fall strictly after the start date when both are set."""

    def check(values: Mapping[str, Any]) -> ErrorSet | None:
        start_value = values.get(start_field)
        end_value = values.get(end_field)
        if not start_value or not end_value:
            return None

        start = _as_date(start_value)
        end = _as_date(end_value)
        if start is None or end is None or end <= start:
            return error(ErrorKind.INVALID_DATE_RANGE)
        return None

    return CrossFieldRule(
        name="dateRange",
        fields=(start_field, end_field),
        check=check,
    )
