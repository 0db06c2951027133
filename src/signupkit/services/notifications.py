"""Toast notifications and the global busy indicator.

Both services publish through a ``StateHolder`` so the presentation layer can
subscribe; they also implement the capabilities the registration controller
consumes:
- ``ToastService.notify(kind, message)``
- ``LoadingService.set_busy(busy)``
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from enum import Enum

from signupkit.services.broadcast import StateHolder

logger = logging.getLogger(__name__)


class NoticeKind(Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


# Display time in milliseconds when the caller does not give one
DEFAULT_DURATIONS_MS = {
    NoticeKind.SUCCESS: 4000,
    NoticeKind.ERROR: 8000,
    NoticeKind.INFO: 3000,
    NoticeKind.WARNING: 6000,
}


@dataclass(frozen=True)
class ToastMessage:
    id: int
    message: str
    kind: NoticeKind
    duration_ms: int


# =============================================================================
# Toasts
# =============================================================================


class ToastService:
    """Publishes toast messages; ``None`` means nothing is shown."""

    def __init__(self) -> None:
        self.toasts: StateHolder[ToastMessage | None] = StateHolder(None)
        self._ids = itertools.count(1)

    def show(
        self,
        message: str,
        kind: NoticeKind,
        duration_ms: int | None = None,
    ) -> ToastMessage:
        toast = ToastMessage(
            id=next(self._ids),
            message=message,
            kind=kind,
            duration_ms=DEFAULT_DURATIONS_MS[kind] if duration_ms is None else duration_ms,
        )
        logger.debug("Toast %d (%s): %s", toast.id, kind.value, message)
        self.toasts.publish(toast)
        return toast

    def success(self, message: str, duration_ms: int | None = None) -> ToastMessage:
        return self.show(message, NoticeKind.SUCCESS, duration_ms)

    def error(self, message: str, duration_ms: int | None = None) -> ToastMessage:
        return self.show(message, NoticeKind.ERROR, duration_ms)

    def info(self, message: str, duration_ms: int | None = None) -> ToastMessage:
        return self.show(message, NoticeKind.INFO, duration_ms)

    def warning(self, message: str, duration_ms: int | None = None) -> ToastMessage:
        return self.show(message, NoticeKind.WARNING, duration_ms)

    def clear(self) -> None:
        self.toasts.publish(None)

    def notify(self, kind: NoticeKind, message: str) -> None:
        self.show(message, kind)


# =============================================================================
# Loading
# =============================================================================


class LoadingService:
    """Counted busy indicator with a safety timeout.

    Every ``show`` must be paired with a ``hide``; the indicator goes off when
    the count returns to zero, or when ``max_duration`` elapses without that
    happening.
    """

    def __init__(self, max_duration: float = 10.0):
        self.max_duration = max_duration
        self.loading: StateHolder[bool] = StateHolder(False)
        self._count = 0
        self._safety_timer: asyncio.TimerHandle | None = None

    @property
    def is_loading(self) -> bool:
        return self.loading.value

    @property
    def request_count(self) -> int:
        return self._count

    def show(self) -> None:
        """Raise the indicator. Must run on the event loop thread."""
        self._count += 1
        logger.debug("Loading shown (count=%d)", self._count)
        self.loading.publish(True)

        if self._safety_timer is None:
            loop = asyncio.get_running_loop()
            self._safety_timer = loop.call_later(self.max_duration, self._expire)

    def hide(self) -> None:
        self._count -= 1
        logger.debug("Loading hidden (count=%d)", self._count)
        if self._count <= 0:
            self._count = 0
            self.loading.publish(False)
            self._clear_safety_timer()

    def reset(self) -> None:
        """Force the indicator off (used on errors)."""
        self._count = 0
        self.loading.publish(False)
        self._clear_safety_timer()

    def set_busy(self, busy: bool) -> None:
        if busy:
            self.show()
        else:
            self.hide()

    def _expire(self) -> None:
        self._safety_timer = None
        logger.warning(
            "Loading indicator still on after %.1fs, forcing it off", self.max_duration
        )
        self.reset()

    def _clear_safety_timer(self) -> None:
        if self._safety_timer is not None:
            self._safety_timer.cancel()
            self._safety_timer = None
