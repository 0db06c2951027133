"""Registration controller and the capabilities it consumes.

Usage:
    from signupkit.controller import RegistrationController

    controller = RegistrationController.for_registration(submit=send_record)
    controller.set_value("email", "ana@example.com")
    await controller.wait_for_checks()
    result = await controller.submit()
"""

from signupkit.controller.ports import BusyIndicator, Notifier, SubmitFn
from signupkit.controller.registration import (
    FormStatus,
    PhoneType,
    RegistrationController,
    SubmissionResult,
)

__all__ = [
    "BusyIndicator",
    "FormStatus",
    "Notifier",
    "PhoneType",
    "RegistrationController",
    "SubmissionResult",
    "SubmitFn",
]
