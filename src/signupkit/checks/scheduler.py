"""Debounced, token-guarded asynchronous checks.

Every qualifying value change restarts the field's debounce timer. When the
timer elapses the runner issues a fresh token and asks the oracle. Only a
result that still carries the field's current token may touch the field, so a
slow answer for an old value never overwrites a newer one.

Oracle failures are treated as "available": a flaky service must not lock the
user out.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from signupkit.checks.oracle import AvailabilityOracle, OracleKind
from signupkit.validation.types import ErrorKind

if TYPE_CHECKING:
    from signupkit.forms.state import FieldState

logger = logging.getLogger(__name__)

SettledCallback = Callable[["FieldState"], None]


@dataclass(frozen=True)
class AsyncCheck:
    """Definition of an asynchronous availability check.

    Attributes:
        name: Registered name (e.g. "emailUnique")
        oracle_kind: What the oracle is asked about
        error_kind: Kind set on the field when the value is taken
        debounce: Quiet period in seconds before the oracle is called
        min_length: Shortest value worth checking
        exact_length: If set, only values of exactly this length are checked
        normalize: Applied to the value before it is sent
    """

    name: str
    oracle_kind: OracleKind
    error_kind: ErrorKind
    debounce: float
    min_length: int = 1
    exact_length: int | None = None
    normalize: Callable[[str], str] = str.strip

    def qualifies(self, value: Any) -> bool:
        if not value or not isinstance(value, str):
            return False
        if self.exact_length is not None:
            return len(value) == self.exact_length
        return len(value) >= self.min_length


def email_unique(debounce: float = 0.8) -> AsyncCheck:
    return AsyncCheck(
        name="emailUnique",
        oracle_kind=OracleKind.EMAIL,
        error_kind=ErrorKind.EMAIL_TAKEN,
        debounce=debounce,
        normalize=str.lower,
    )


def username_available(debounce: float = 0.6) -> AsyncCheck:
    return AsyncCheck(
        name="usernameAvailable",
        oracle_kind=OracleKind.USERNAME,
        error_kind=ErrorKind.USERNAME_TAKEN,
        debounce=debounce,
        min_length=3,
        normalize=str.lower,
    )


def nif_unique(debounce: float = 0.5) -> AsyncCheck:
    return AsyncCheck(
        name="nifUnique",
        oracle_kind=OracleKind.NATIONAL_ID,
        error_kind=ErrorKind.NIF_TAKEN,
        debounce=debounce,
        exact_length=9,
        normalize=str.upper,
    )


@dataclass(eq=False)
class _Slot:
    """Per-field scheduling state."""

    token: int | None = None
    timer: "asyncio.Task[None] | None" = None
    in_flight: "set[asyncio.Task[None]]" = field(default_factory=set)

    def tasks(self) -> "list[asyncio.Task[None]]":
        pending = [task for task in self.in_flight if not task.done()]
        if self.timer is not None and not self.timer.done():
            pending.append(self.timer)
        return pending


class AsyncCheckRunner:
    """Schedules availability checks for fields on the running event loop.

    One runner serves one form instance. Field state is only written from
    the loop thread, one event at a time.
    """

    def __init__(self, oracle: AvailabilityOracle):
        self.oracle = oracle
        self._slots: dict["FieldState", _Slot] = {}
        self._tokens = itertools.count(1)

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def schedule(
        self,
        state: "FieldState",
        check: AsyncCheck,
        on_settled: SettledCallback | None = None,
    ) -> None:
        """(Re)start the check cycle for a field after its value changed.

        Any pending timer is cancelled and the current token invalidated. A
        value that does not qualify settles immediately with no error.

        Raises:
            RuntimeError: A qualifying value was given with no running event
                loop. The field is left with no check pending.
        """
        slot = self._slots.setdefault(state, _Slot())
        if slot.timer is not None:
            slot.timer.cancel()
            slot.timer = None
        slot.token = None
        state.async_errors.pop(check.error_kind.value, None)

        value = state.value
        if not check.qualifies(value):
            state.pending_async = False
            return

        loop = asyncio.get_running_loop()
        state.pending_async = True
        normalized = check.normalize(value)
        logger.debug(
            "Scheduling %s for '%s' in %.3fs", check.name, state.name, check.debounce
        )
        slot.timer = loop.create_task(
            self._debounce(state, slot, check, normalized, on_settled)
        )

    async def _debounce(
        self,
        state: "FieldState",
        slot: _Slot,
        check: AsyncCheck,
        value: str,
        on_settled: SettledCallback | None,
    ) -> None:
        await asyncio.sleep(check.debounce)

        token = next(self._tokens)
        slot.token = token
        slot.timer = None
        logger.debug("Issuing %s token %d for '%s'", check.name, token, state.name)

        task = asyncio.get_running_loop().create_task(
            self._run_check(state, slot, check, value, token, on_settled)
        )
        slot.in_flight.add(task)
        task.add_done_callback(slot.in_flight.discard)

    async def _run_check(
        self,
        state: "FieldState",
        slot: _Slot,
        check: AsyncCheck,
        value: str,
        token: int,
        on_settled: SettledCallback | None,
    ) -> None:
        try:
            available = await self.oracle.is_available(check.oracle_kind, value)
        except Exception as e:
            # Availability unknown: assume available
            logger.warning("%s check for '%s' failed: %s", check.name, state.name, e)
            available = True

        if slot.token != token:
            logger.debug(
                "Discarding stale %s result for '%s' (token %d)",
                check.name,
                state.name,
                token,
            )
            return

        if available:
            state.async_errors.pop(check.error_kind.value, None)
        else:
            state.async_errors[check.error_kind.value] = True
        state.pending_async = False

        if on_settled is not None:
            on_settled(state)

    # -------------------------------------------------------------------------
    # Cancellation and inspection
    # -------------------------------------------------------------------------

    def current_token(self, state: "FieldState") -> int | None:
        slot = self._slots.get(state)
        return slot.token if slot else None

    def is_scheduled(self, state: "FieldState") -> bool:
        slot = self._slots.get(state)
        return bool(slot and slot.tasks())

    @property
    def outstanding(self) -> bool:
        """True while any timer or oracle call has not finished."""
        return any(slot.tasks() for slot in self._slots.values())

    def cancel(self, state: "FieldState") -> None:
        """Cancel everything pending for one field."""
        slot = self._slots.pop(state, None)
        if slot is None:
            return
        for task in slot.tasks():
            task.cancel()
        state.pending_async = False

    def cancel_all(self) -> None:
        """Cancel every timer and in-flight check (form destroyed or reset)."""
        for state in list(self._slots):
            self.cancel(state)

    async def drain(self) -> None:
        """Wait until no timer or oracle call is outstanding."""
        while True:
            tasks = [task for slot in self._slots.values() for task in slot.tasks()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)
