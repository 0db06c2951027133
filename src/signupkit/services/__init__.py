"""Broadcast state holders and the notify/busy services built on them."""

from signupkit.services.broadcast import StateHolder
from signupkit.services.notifications import (
    LoadingService,
    NoticeKind,
    ToastMessage,
    ToastService,
)

__all__ = [
    "LoadingService",
    "NoticeKind",
    "StateHolder",
    "ToastMessage",
    "ToastService",
]
