"""Field-level validation rules.

Each rule is a pure callable ``(value) -> ErrorSet | None``:
- required / requiredTrue: presence checks
- minlength / maxlength / email: generic length and shape checks
- passwordStrength: one kind per unmet strength condition
- nif: national ID format and control letter
- telefono: national mobile phone format
- codigoPostal: 5 digits with a valid province prefix
- minAge: minimum age for an ISO birth date

Apart from the presence checks, empty input is "no opinion" and is valid.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Any

from signupkit.validation.types import ErrorKind, ErrorSet, FieldRule, error, is_empty


# =============================================================================
# Format Patterns
# =============================================================================

# Email: Basic RFC 5322 compliant pattern
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

NIF_PATTERN = re.compile(r"^[0-9]{8}[A-Z]$")

# Mobile phone: 9 digits starting with 6 or 7
TELEFONO_PATTERN = re.compile(r"^[67][0-9]{8}$")

POSTAL_CODE_PATTERN = re.compile(r"^[0-9]{5}$")

NIF_CONTROL_LETTERS = "TRWAGMYFPDXBNJZSQVHLCKE"

PASSWORD_MIN_LENGTH = 8
PASSWORD_SPECIAL_CHARS = '!@#$%^&*(),.?":{}|<>'

MIN_PROVINCE = 1
MAX_PROVINCE = 52


# =============================================================================
# Presence
# =============================================================================


def required() -> FieldRule:
    """Fires ``required`` for None, empty string or empty collection."""

    def validate(value: Any) -> ErrorSet | None:
        if is_empty(value):
            return error(ErrorKind.REQUIRED)
        return None

    return validate


def required_true() -> FieldRule:
    """Fires ``required`` unless the value is exactly True (consent boxes)."""

    def validate(value: Any) -> ErrorSet | None:
        if value is not True:
            return error(ErrorKind.REQUIRED)
        return None

    return validate


# =============================================================================
# Length and Shape
# =============================================================================


@dataclass(frozen=True)
class MinLength:
    length: int

    def __call__(self, value: Any) -> ErrorSet | None:
        if is_empty(value) or not hasattr(value, "__len__"):
            return None
        actual = len(value)
        if actual < self.length:
            return error(
                ErrorKind.MINLENGTH,
                {"requiredLength": self.length, "actualLength": actual},
            )
        return None


@dataclass(frozen=True)
class MaxLength:
    length: int

    def __call__(self, value: Any) -> ErrorSet | None:
        if is_empty(value) or not hasattr(value, "__len__"):
            return None
        actual = len(value)
        if actual > self.length:
            return error(
                ErrorKind.MAXLENGTH,
                {"requiredLength": self.length, "actualLength": actual},
            )
        return None


def email() -> FieldRule:
    def validate(value: Any) -> ErrorSet | None:
        if is_empty(value):
            return None
        if not isinstance(value, str) or not EMAIL_PATTERN.fullmatch(value):
            return error(ErrorKind.EMAIL)
        return None

    return validate


# =============================================================================
# Password Strength
# =============================================================================


def password_strength() -> FieldRule:
    """Checks length, upper/lower case, digit and special character.

    Every unmet condition fires its own kind, so a weak password may carry
    several at once.
    """

    def validate(value: Any) -> ErrorSet | None:
        if not value:
            return None
        value = str(value)

        errors: ErrorSet = {}
        if len(value) < PASSWORD_MIN_LENGTH:
            errors[ErrorKind.MIN_LENGTH.value] = {
                "required": PASSWORD_MIN_LENGTH,
                "actual": len(value),
            }
        if not re.search(r"[A-Z]", value):
            errors[ErrorKind.NO_UPPERCASE.value] = True
        if not re.search(r"[a-z]", value):
            errors[ErrorKind.NO_LOWERCASE.value] = True
        if not re.search(r"[0-9]", value):
            errors[ErrorKind.NO_NUMBER.value] = True
        if not any(ch in PASSWORD_SPECIAL_CHARS for ch in value):
            errors[ErrorKind.NO_SPECIAL.value] = True

        return errors or None

    return validate


# =============================================================================
# National Formats
# =============================================================================


def nif_control_letter(number: int) -> str:
    """Control letter for the 8-digit number of a national ID."""
    return NIF_CONTROL_LETTERS[number % 23]


def nif() -> FieldRule:
    """National ID: 8 digits plus a control letter (e.g. 12345678Z)."""

    def validate(value: Any) -> ErrorSet | None:
        if not value:
            return None
        normalized = str(value).upper().strip()
        if not normalized:
            return None

        if not NIF_PATTERN.fullmatch(normalized):
            return error(
                ErrorKind.INVALID_NIF,
                {"message": "Invalid format: 8 digits + 1 letter (e.g. 12345678Z)"},
            )

        digits = normalized[:8]
        expected = nif_control_letter(int(digits))
        if normalized[8] != expected:
            return error(
                ErrorKind.INVALID_NIF,
                {
                    "message": f'Wrong letter. For {digits} it should be "{expected}"',
                    "expected": expected,
                },
            )
        return None

    return validate


def telefono() -> FieldRule:
    """Mobile phone in national format; whitespace is ignored."""

    def validate(value: Any) -> ErrorSet | None:
        if not value:
            return None
        cleaned = re.sub(r"\s", "", str(value))
        if TELEFONO_PATTERN.fullmatch(cleaned):
            return None
        return error(
            ErrorKind.INVALID_TELEFONO,
            {"message": "Must start with 6 or 7 and have 9 digits"},
        )

    return validate


def codigo_postal() -> FieldRule:
    """Postal code: 5 digits, first two being a province between 01 and 52."""

    def validate(value: Any) -> ErrorSet | None:
        if not value:
            return None
        value = str(value)
        if not POSTAL_CODE_PATTERN.fullmatch(value):
            return error(ErrorKind.INVALID_CP, {"message": "Must have 5 digits"})

        province = int(value[:2])
        if province < MIN_PROVINCE or province > MAX_PROVINCE:
            return error(
                ErrorKind.INVALID_CP,
                {"message": f"Invalid province ({MIN_PROVINCE:02d}-{MAX_PROVINCE})"},
            )
        return None

    return validate


# =============================================================================
# Dates
# =============================================================================


def age_on(birth: date, today: date) -> int:
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


@dataclass(frozen=True)
class MinAge:
    """Birth date (ISO ``YYYY-MM-DD``) must be at least ``years`` ago.

    Unparseable dates are left to other rules.
    """

    years: int
    today: date | None = None

    def __call__(self, value: Any) -> ErrorSet | None:
        if not value:
            return None
        if isinstance(value, date):
            birth = value
        else:
            try:
                birth = date.fromisoformat(str(value))
            except ValueError:
                return None

        actual = age_on(birth, self.today or date.today())
        if actual < self.years:
            return error(ErrorKind.MIN_AGE, {"required": self.years, "actual": actual})
        return None
