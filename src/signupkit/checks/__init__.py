"""Asynchronous availability checks against a remote authority."""

from signupkit.checks.oracle import (
    AvailabilityOracle,
    InMemoryAvailabilityOracle,
    OracleKind,
    OracleUnavailableError,
)
from signupkit.checks.scheduler import (
    AsyncCheck,
    AsyncCheckRunner,
    email_unique,
    nif_unique,
    username_available,
)

__all__ = [
    "AsyncCheck",
    "AsyncCheckRunner",
    "AvailabilityOracle",
    "InMemoryAvailabilityOracle",
    "OracleKind",
    "OracleUnavailableError",
    "email_unique",
    "nif_unique",
    "username_available",
]
