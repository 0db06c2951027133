"""Runtime configuration for signupkit."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class Settings:
    """Timing and limits for the registration pipeline.

    Debounce windows are in milliseconds, keyed by async check name.
    """

    debounce_ms: dict[str, int] = field(
        default_factory=lambda: {
            "emailUnique": 800,
            "usernameAvailable": 600,
            "nifUnique": 500,
        }
    )
    max_extra_phones: int = 3
    oracle_latency_ms: int = 300
    oracle_failure_rate: float = 0.0
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> Settings:
        """Create settings from SIGNUPKIT_* environment variables.

        Unset variables keep their defaults.
        """
        defaults = cls()
        return cls(
            debounce_ms={
                "emailUnique": _env_int(
                    "SIGNUPKIT_EMAIL_DEBOUNCE_MS", defaults.debounce_ms["emailUnique"]
                ),
                "usernameAvailable": _env_int(
                    "SIGNUPKIT_USERNAME_DEBOUNCE_MS",
                    defaults.debounce_ms["usernameAvailable"],
                ),
                "nifUnique": _env_int(
                    "SIGNUPKIT_NIF_DEBOUNCE_MS", defaults.debounce_ms["nifUnique"]
                ),
            },
            max_extra_phones=_env_int(
                "SIGNUPKIT_MAX_EXTRA_PHONES", defaults.max_extra_phones
            ),
            oracle_latency_ms=_env_int(
                "SIGNUPKIT_ORACLE_LATENCY_MS", defaults.oracle_latency_ms
            ),
            oracle_failure_rate=_env_float(
                "SIGNUPKIT_ORACLE_FAILURE_RATE", defaults.oracle_failure_rate
            ),
            log_level=os.environ.get("SIGNUPKIT_LOG_LEVEL", defaults.log_level).upper(),
        )

    def debounce_seconds(self, check_name: str) -> float | None:
        """Debounce window for a check, or None to keep the check's default."""
        if check_name not in self.debounce_ms:
            return None
        return self.debounce_ms[check_name] / 1000

    @property
    def oracle_latency(self) -> float:
        return self.oracle_latency_ms / 1000
