"""Capabilities the registration controller consumes.

The controller never implements transport, toasts or spinners itself; the
application injects objects satisfying these protocols.
"""

from typing import Any, Protocol

from signupkit.services.notifications import NoticeKind


class SubmitFn(Protocol):
    """Sends the resolved registration record.

    Returning False, or raising, means the submission failed. Any other
    return value (including None) is success.
    """

    async def __call__(self, record: dict[str, Any]) -> bool | None:
        ...


class Notifier(Protocol):
    """Fire-and-forget user notification (toast)."""

    def notify(self, kind: NoticeKind, message: str) -> None:
        ...


class BusyIndicator(Protocol):
    """Advisory busy flag, on while a submission is in flight."""

    def set_busy(self, busy: bool) -> None:
        ...
