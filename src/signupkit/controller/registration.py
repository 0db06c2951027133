"""Registration controller: rule orchestration and submission gating.

State machine:
    EDITING -> VALIDATING -> VALID | INVALID -> SUBMITTING -> SUBMITTED | FAILED

- Every tracked change passes through VALIDATING; synchronous and cross-field
  rules re-run in the same call.
- While any async check is outstanding the form is INVALID, whatever the
  synchronous rules say.
- Submitting an INVALID form touches every field and returns the errors; the
  submit capability is not called.
- A failed submission is reported through the notifier and the form returns
  to EDITING with its values kept.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from signupkit.checks.oracle import AvailabilityOracle, InMemoryAvailabilityOracle
from signupkit.checks.scheduler import AsyncCheckRunner
from signupkit.config import Settings
from signupkit.controller.ports import BusyIndicator, Notifier, SubmitFn
from signupkit.forms.loader import load_registration_form
from signupkit.forms.state import UPDATE_ON_BLUR, FieldState, FormRecord
from signupkit.services.broadcast import StateHolder
from signupkit.services.notifications import NoticeKind
from signupkit.validation.messages import first_message, password_messages
from signupkit.validation.types import ErrorSet

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Account created successfully! Welcome to TecnoMayores"
FAILURE_MESSAGE = "We could not create your account. Please try again."


class FormStatus(Enum):
    EDITING = "editing"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    FAILED = "failed"


class PhoneType(Enum):
    """Allowed values for an additional phone entry's ``type``."""

    MOBILE = "mobile"
    LANDLINE = "landline"


@dataclass
class SubmissionResult:
    """Outcome of a submit attempt.

    Attributes:
        status: Status reached by the attempt (SUBMITTED, FAILED or INVALID)
        record: The record handed to the submit capability, if it was called
        errors: Error sets by path when the form was invalid
        pending: True if the attempt was blocked by outstanding async checks
        error: Failure description for FAILED attempts
    """

    status: FormStatus
    record: dict[str, Any] | None = None
    errors: dict[str, ErrorSet] = field(default_factory=dict)
    pending: bool = False
    error: str | None = None

    @property
    def submitted(self) -> bool:
        return self.status == FormStatus.SUBMITTED

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status.value}
        if self.record is not None:
            result["record"] = self.record
        if self.errors:
            result["errors"] = self.errors
        if self.pending:
            result["pending"] = True
        if self.error:
            result["error"] = self.error
        return result


class RegistrationController:
    """Public contract between the registration UI and the validation core.

    Availability checks run as tasks on the running asyncio loop. Edits made
    with no loop running still apply every sync rule, but schedule no check
    and leave the field with nothing pending.
    """

    def __init__(
        self,
        form: FormRecord,
        oracle: AvailabilityOracle,
        submit: SubmitFn,
        notifier: Notifier | None = None,
        busy: BusyIndicator | None = None,
        phones_array: str = "extra_phones",
    ):
        self.form = form
        self.runner = AsyncCheckRunner(oracle)
        self.notifier = notifier
        self.busy = busy
        self.phones_array = phones_array
        self.status_changes: StateHolder[FormStatus] = StateHolder(FormStatus.EDITING)
        self._submit = submit

    @classmethod
    def for_registration(
        cls,
        submit: SubmitFn,
        *,
        oracle: AvailabilityOracle | None = None,
        notifier: Notifier | None = None,
        busy: BusyIndicator | None = None,
        settings: Settings | None = None,
    ) -> "RegistrationController":
        """Controller over the shipped registration form definition."""
        settings = settings or Settings()
        if oracle is None:
            oracle = InMemoryAvailabilityOracle(
                latency=settings.oracle_latency,
                failure_rate=settings.oracle_failure_rate,
            )
        return cls(
            form=load_registration_form(settings),
            oracle=oracle,
            submit=submit,
            notifier=notifier,
            busy=busy,
        )

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def status(self) -> FormStatus:
        return self.status_changes.value

    @property
    def pending(self) -> bool:
        """True while any field waits on an async check."""
        return self.form.pending

    @property
    def valid(self) -> bool:
        return self.form.valid

    def field(self, path: str) -> FieldState:
        """Field state at a dotted path. Raises KeyError for unknown paths."""
        return self.form.get(path)

    def value(self, path: str) -> Any:
        return self.form.get(path).value

    def errors(self, path: str) -> ErrorSet:
        return dict(self.form.get(path).errors)

    @property
    def form_errors(self) -> ErrorSet:
        """Record-level (cross-field) errors of the root record."""
        return self.form.errors

    def error_message(self, path: str) -> str:
        """Message to display for a field; empty until the field is touched."""
        state = self.form.get(path)
        if not state.touched:
            return ""
        return first_message(state.errors)

    def password_messages(self, path: str = "password") -> list[str]:
        return password_messages(self.form.get(path).errors)

    def values(self) -> dict[str, Any]:
        return self.form.values()

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def set_value(self, path: str, value: Any) -> None:
        """Apply a user edit.

        Fields declared ``update_on: blur`` hold the edit until ``touch``.
        """
        record, state = self.form.locate(path)
        if state.update_on == UPDATE_ON_BLUR:
            state.stage(value)
            return
        self._commit(record, state, value)

    def touch(self, path: str) -> None:
        """The user left the field."""
        record, state = self.form.locate(path)
        if state.has_staged:
            self._commit(record, state, state.take_staged())
        state.touched = True

    def add_phone(self, phone_type: PhoneType = PhoneType.MOBILE) -> bool:
        """Append an additional phone entry. False once the list is full."""
        entry = self.form.array(self.phones_array).add()
        if entry is None:
            return False
        type_state = entry.fields.get("type")
        if type_state is not None and type_state.value != phone_type.value:
            type_state.value = phone_type.value
            type_state.validate()
        self._begin_validation()
        self._refresh_status()
        return True

    def remove_phone(self, index: int) -> bool:
        """Remove the additional phone at ``index``. False if out of range."""
        removed = self.form.array(self.phones_array).remove_at(index)
        if removed is None:
            return False
        for _, state in removed.iter_fields():
            self.runner.cancel(state)
        self._begin_validation()
        self._refresh_status()
        return True

    @property
    def phone_count(self) -> int:
        return len(self.form.array(self.phones_array))

    def _commit(self, record: FormRecord, state: FieldState, value: Any) -> None:
        self._begin_validation()
        state.value = value
        state.dirty = True
        state.validate()
        record.run_cross_field_rules(state.name)
        self._schedule_check(state)
        self._refresh_status()

    def _schedule_check(self, state: FieldState) -> None:
        check = state.async_check
        if check is None:
            return
        if state.sync_errors:
            # Availability of a malformed value is irrelevant
            self.runner.cancel(state)
            state.async_errors.pop(check.error_kind.value, None)
            return
        try:
            self.runner.schedule(state, check, self._on_check_settled)
        except RuntimeError:
            logger.warning(
                "No event loop running; no %s check scheduled for '%s'",
                check.name,
                state.name,
            )

    def _on_check_settled(self, state: FieldState) -> None:
        logger.debug("Async check settled for '%s': %s", state.name, state.async_errors)
        self._refresh_status()

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def _set_status(self, status: FormStatus, *, force: bool = False) -> None:
        if status != self.status or force:
            self.status_changes.publish(status)

    def _begin_validation(self) -> None:
        if self.status != FormStatus.SUBMITTING:
            self._set_status(FormStatus.VALIDATING)

    def _refresh_status(self) -> None:
        if self.status == FormStatus.SUBMITTING:
            return
        if self.form.valid and not self.form.pending:
            self._set_status(FormStatus.VALID)
        else:
            self._set_status(FormStatus.INVALID)

    async def wait_for_checks(self) -> None:
        """Wait for every scheduled async check to resolve."""
        await self.runner.drain()
        self._refresh_status()

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit(self) -> SubmissionResult:
        """Attempt to submit the form.

        Never raises: invalid forms and capability failures are reported in
        the returned SubmissionResult.
        """
        if self.status == FormStatus.SUBMITTING:
            logger.warning("Submission already in progress, ignoring")
            return SubmissionResult(status=FormStatus.SUBMITTING)

        for path, state in list(self.form.iter_fields()):
            if state.has_staged:
                record, _ = self.form.locate(path)
                self._commit(record, state, state.take_staged())

        self._begin_validation()
        self.form.validate()
        self._refresh_status()

        if self.status != FormStatus.VALID:
            self.form.mark_all_touched()
            errors = self.form.errors_by_path()
            pending = self.form.pending
            logger.info(
                "Submission blocked: %d path(s) with errors%s",
                len(errors),
                ", async checks pending" if pending else "",
            )
            return SubmissionResult(status=FormStatus.INVALID, errors=errors, pending=pending)

        record = self.form.values()
        self._set_status(FormStatus.SUBMITTING)
        self._set_busy(True)
        try:
            try:
                outcome = await self._submit(record)
            except Exception as e:
                logger.error("Submission failed: %s", e)
                return self._fail(record, str(e) or type(e).__name__)

            if outcome is False:
                logger.error("Submission rejected by the submit capability")
                return self._fail(record, "submission rejected")

            logger.info("Registration submitted for '%s'", record.get("username", ""))
            self._clear_form()
            self._set_status(FormStatus.SUBMITTED)
            self._notify(NoticeKind.SUCCESS, SUCCESS_MESSAGE)
            return SubmissionResult(status=FormStatus.SUBMITTED, record=record)
        finally:
            self._set_busy(False)

    def _fail(self, record: dict[str, Any], reason: str) -> SubmissionResult:
        self._set_status(FormStatus.FAILED)
        self._notify(NoticeKind.ERROR, FAILURE_MESSAGE)
        self._set_status(FormStatus.EDITING)
        return SubmissionResult(status=FormStatus.FAILED, record=record, error=reason)

    def _notify(self, kind: NoticeKind, message: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(kind, message)
        except Exception as e:
            logger.error("Notifier failed: %s", e)

    def _set_busy(self, busy: bool) -> None:
        if self.busy is None:
            return
        try:
            self.busy.set_busy(busy)
        except Exception as e:
            logger.error("Busy indicator failed: %s", e)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _clear_form(self) -> None:
        self.runner.cancel_all()
        self.form.reset()

    def reset(self) -> None:
        """Discard all values and pending checks and start over."""
        self._clear_form()
        self._set_status(FormStatus.EDITING, force=True)

    def dispose(self) -> None:
        """Cancel every outstanding timer and check (form destroyed)."""
        self.runner.cancel_all()
