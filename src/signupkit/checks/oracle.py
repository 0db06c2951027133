"""Remote availability authority.

The registration flow asks a remote service whether an email, username or
national ID is still free. ``InMemoryAvailabilityOracle`` stands in for that
service with fixed "already registered" sets, simulated latency and optional
simulated network failures.
"""

import asyncio
import logging
import random
from collections import deque
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class OracleKind(Enum):
    """What is being checked for availability."""

    EMAIL = "email"
    USERNAME = "username"
    NATIONAL_ID = "nationalId"


class OracleUnavailableError(Exception):
    """The availability service could not answer (network failure)."""


class AvailabilityOracle(Protocol):
    """Protocol for the remote "is this value still free?" service."""

    async def is_available(self, kind: OracleKind, value: str) -> bool:
        """Check whether ``value`` is unused for ``kind``.

        Raises:
            OracleUnavailableError: The service could not be reached
        """
        ...


REGISTERED_EMAILS = (
    "admin@tecnomayores.com",
    "usuario@test.com",
    "ejemplo@gmail.com",
    "test@test.com",
)

REGISTERED_USERNAMES = (
    "admin",
    "usuario",
    "test",
    "pepe",
    "maria",
)

REGISTERED_NIFS = (
    "12345678Z",
    "87654321X",
)


def _normalize(kind: OracleKind, value: str) -> str:
    if kind == OracleKind.NATIONAL_ID:
        return value.strip().upper()
    return value.strip().lower()


class InMemoryAvailabilityOracle:
    """Simulated availability service backed by in-memory sets.

    Attributes:
        latency: Seconds each lookup takes
        failure_rate: Probability (0-1) that a lookup raises
            OracleUnavailableError
        calls: The last ``call_history`` (kind, value) pairs looked up, oldest
            first
    """

    def __init__(
        self,
        latency: float = 0.3,
        failure_rate: float = 0.0,
        seed: int | None = None,
        call_history: int = 100,
    ):
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")
        self.latency = latency
        self.failure_rate = failure_rate
        self.calls: deque[tuple[OracleKind, str]] = deque(maxlen=call_history)
        self._random = random.Random(seed)
        self._registered: dict[OracleKind, set[str]] = {
            OracleKind.EMAIL: {_normalize(OracleKind.EMAIL, v) for v in REGISTERED_EMAILS},
            OracleKind.USERNAME: {
                _normalize(OracleKind.USERNAME, v) for v in REGISTERED_USERNAMES
            },
            OracleKind.NATIONAL_ID: {
                _normalize(OracleKind.NATIONAL_ID, v) for v in REGISTERED_NIFS
            },
        }

    def register(self, kind: OracleKind, value: str) -> None:
        """Mark a value as taken."""
        self._registered[kind].add(_normalize(kind, value))

    async def is_available(self, kind: OracleKind, value: str) -> bool:
        self.calls.append((kind, value))
        if self.latency > 0:
            await asyncio.sleep(self.latency)

        if self.failure_rate and self._random.random() < self.failure_rate:
            raise OracleUnavailableError(f"{kind.value} availability service unreachable")

        available = _normalize(kind, value) not in self._registered[kind]
        logger.debug("Availability of %s %r: %s", kind.value, value, available)
        return available
