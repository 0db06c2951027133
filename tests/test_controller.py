"""Tests for the registration controller and its submission gating."""

import asyncio
import logging
from unittest.mock import AsyncMock, call

import pytest

from signupkit.checks.oracle import InMemoryAvailabilityOracle
from signupkit.controller.registration import (
    FAILURE_MESSAGE,
    SUCCESS_MESSAGE,
    FormStatus,
    PhoneType,
    RegistrationController,
    SubmissionResult,
)
from signupkit.forms.state import UPDATE_ON_BLUR, FieldState, FormArray, FormRecord
from signupkit.services.notifications import NoticeKind
from signupkit.validation import rules

from conftest import VALID_RECORD, fill


# =============================================================================
# Status
# =============================================================================


class TestStatus:
    def test_starts_editing(self, controller):
        assert controller.status == FormStatus.EDITING
        assert not controller.valid

    @pytest.mark.asyncio
    async def test_edits_pass_through_validating(self, controller):
        seen = []
        controller.status_changes.subscribe(seen.append, replay=False)

        controller.set_value("first_name", "Ana")
        assert seen == [FormStatus.VALIDATING, FormStatus.INVALID]

    @pytest.mark.asyncio
    async def test_complete_record_becomes_valid_after_checks(self, controller):
        fill(controller)
        assert controller.pending
        assert controller.status == FormStatus.INVALID

        await controller.wait_for_checks()
        assert not controller.pending
        assert controller.status == FormStatus.VALID

    @pytest.mark.asyncio
    async def test_settled_check_refreshes_status_without_waiting(self, controller):
        fill(controller)
        for _ in range(50):
            if controller.status == FormStatus.VALID:
                break
            await asyncio.sleep(0.01)
        assert controller.status == FormStatus.VALID

    @pytest.mark.asyncio
    async def test_taken_email_is_invalid(self, controller):
        fill(controller, email="test@test.com")
        await controller.wait_for_checks()

        assert controller.errors("email") == {"emailTaken": True}
        assert controller.error_message("email") == "This email is already registered"
        assert controller.status == FormStatus.INVALID

    @pytest.mark.asyncio
    async def test_taken_username_and_nif(self, controller):
        fill(controller, username="Pepe", national_id="87654321X")
        await controller.wait_for_checks()

        assert controller.errors("username") == {"usernameTaken": True}
        assert controller.errors("national_id") == {"nifTaken": True}

    @pytest.mark.asyncio
    async def test_malformed_value_is_not_checked(self, controller, oracle):
        controller.set_value("email", "not-an-email")
        assert not controller.pending
        await controller.wait_for_checks()
        assert list(oracle.calls) == []
        assert controller.errors("email") == {"email": True}

    @pytest.mark.asyncio
    async def test_sync_error_discards_previous_availability_result(self, controller):
        controller.set_value("email", "test@test.com")
        await controller.wait_for_checks()
        assert "emailTaken" in controller.errors("email")

        controller.set_value("email", "test@")
        assert controller.errors("email") == {"email": True}

    def test_edit_without_event_loop_schedules_nothing(self, controller, oracle, caplog):
        with caplog.at_level(logging.WARNING, logger="signupkit.controller.registration"):
            controller.set_value("email", "new@example.com")

        assert not controller.pending
        assert controller.errors("email") == {}
        assert list(oracle.calls) == []
        assert "no emailUnique check scheduled" in caplog.text


# =============================================================================
# Messages
# =============================================================================


class TestMessages:
    def test_message_hidden_until_touched(self, controller):
        assert controller.error_message("first_name") == ""
        controller.touch("first_name")
        assert controller.error_message("first_name") == "This field is required"

    def test_password_checklist(self, controller):
        controller.set_value("password", "abc")
        assert controller.password_messages() == [
            "At least 8 characters",
            "Must contain at least one uppercase letter",
            "Must contain at least one number",
            "Must contain at least one special character (!@#$%...)",
        ]

    def test_non_string_password(self, controller):
        controller.set_value("password", 12345678)
        assert {"noUppercase", "noLowercase", "noSpecial"} <= set(controller.errors("password"))

    def test_password_mismatch_is_a_form_error(self, controller):
        controller.set_value("password", "Abcdef1!")
        controller.set_value("confirm_password", "Abcdef1?")
        assert "passwordMismatch" in controller.form_errors
        assert "passwordMismatch" not in controller.errors("password")
        assert "passwordMismatch" not in controller.errors("confirm_password")

    def test_phone_requirement_is_a_form_error(self, controller):
        assert "atLeastOneRequired" in controller.form_errors
        controller.set_value("secondary_phone", "712345678")
        assert "atLeastOneRequired" not in controller.form_errors

    def test_unknown_path(self, controller):
        with pytest.raises(KeyError):
            controller.set_value("nope", "x")
        with pytest.raises(KeyError):
            controller.errors("address.nope")


# =============================================================================
# Additional Phones
# =============================================================================


class TestPhones:
    def test_at_most_three(self, controller):
        assert [controller.add_phone() for _ in range(4)] == [True, True, True, False]
        assert controller.phone_count == 3

    def test_phone_type(self, controller):
        controller.add_phone(PhoneType.LANDLINE)
        assert controller.value("extra_phones.0.type") == "landline"
        controller.add_phone()
        assert controller.value("extra_phones.1.type") == "mobile"

    def test_remove_shifts_later_entries(self, controller):
        for index, number in enumerate(("611111111", "622222222", "633333333")):
            controller.add_phone()
            controller.set_value(f"extra_phones.{index}.number", number)

        assert controller.remove_phone(1)
        assert controller.values()["extra_phones"] == [
            {"type": "mobile", "number": "611111111"},
            {"type": "mobile", "number": "633333333"},
        ]

    def test_remove_out_of_range(self, controller):
        controller.add_phone()
        assert not controller.remove_phone(3)
        assert not controller.remove_phone(-1)
        assert controller.phone_count == 1

    @pytest.mark.asyncio
    async def test_empty_phone_entry_blocks_validity(self, controller):
        fill(controller)
        await controller.wait_for_checks()
        assert controller.status == FormStatus.VALID

        controller.add_phone()
        assert controller.status == FormStatus.INVALID
        assert controller.errors("extra_phones.0.number") == {"required": True}

        controller.set_value("extra_phones.0.number", "712345678")
        assert controller.status == FormStatus.VALID

        controller.set_value("extra_phones.0.number", "")
        controller.remove_phone(0)
        assert controller.status == FormStatus.VALID


# =============================================================================
# Submission
# =============================================================================


class TestSubmission:
    @pytest.mark.asyncio
    async def test_successful_submission(self, controller, submit, notifier, busy):
        fill(controller)
        await controller.wait_for_checks()

        result = await controller.submit()

        assert result.status == FormStatus.SUBMITTED
        assert result.submitted
        submit.assert_awaited_once()
        record = submit.await_args.args[0]
        assert record["email"] == "ana@example.com"
        assert record["address"]["postal_code"] == "28001"
        assert record["extra_phones"] == []
        assert result.record == record

        notifier.notify.assert_called_once_with(NoticeKind.SUCCESS, SUCCESS_MESSAGE)
        assert busy.set_busy.call_args_list == [call(True), call(False)]

    @pytest.mark.asyncio
    async def test_success_resets_the_form(self, controller):
        fill(controller)
        controller.add_phone()
        controller.set_value("extra_phones.0.number", "712345678")
        await controller.wait_for_checks()

        await controller.submit()

        assert controller.status == FormStatus.SUBMITTED
        assert controller.value("email") == ""
        assert controller.value("accept_terms") is False
        assert controller.phone_count == 0
        assert not controller.field("email").touched

    @pytest.mark.asyncio
    async def test_invalid_form_is_not_submitted(self, controller, submit):
        controller.set_value("first_name", "Ana")

        result = await controller.submit()

        assert result.status == FormStatus.INVALID
        submit.assert_not_awaited()
        assert result.errors["last_name"] == {"required": True}
        assert "atLeastOneRequired" in result.errors[""]
        assert all(state.touched for _, state in controller.form.iter_fields())
        assert controller.error_message("email") == "This field is required"

    @pytest.mark.asyncio
    async def test_pending_checks_block_submission(self, controller, submit):
        fill(controller)
        assert controller.pending

        result = await controller.submit()
        assert result.status == FormStatus.INVALID
        assert result.pending
        assert result.errors == {}
        submit.assert_not_awaited()

        await controller.wait_for_checks()
        result = await controller.submit()
        assert result.status == FormStatus.SUBMITTED
        submit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_keeps_values_and_notifies(self, controller, notifier, busy):
        controller._submit = AsyncMock(side_effect=RuntimeError("server down"))
        fill(controller)
        await controller.wait_for_checks()

        result = await controller.submit()

        assert result.status == FormStatus.FAILED
        assert result.error == "server down"
        assert controller.status == FormStatus.EDITING
        assert controller.value("email") == "ana@example.com"
        notifier.notify.assert_called_once_with(NoticeKind.ERROR, FAILURE_MESSAGE)
        assert busy.set_busy.call_args_list == [call(True), call(False)]

    @pytest.mark.asyncio
    async def test_rejected_submission_is_a_failure(self, controller):
        controller._submit = AsyncMock(return_value=False)
        fill(controller)
        await controller.wait_for_checks()

        result = await controller.submit()
        assert result.status == FormStatus.FAILED
        assert controller.value("username") == "ana_g"

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, controller):
        controller._submit = AsyncMock(side_effect=[RuntimeError("timeout"), True])
        fill(controller)
        await controller.wait_for_checks()

        assert (await controller.submit()).status == FormStatus.FAILED
        assert (await controller.submit()).status == FormStatus.SUBMITTED
        assert controller._submit.await_count == 2

    @pytest.mark.asyncio
    async def test_submit_while_submitting_is_ignored(self, controller):
        release = asyncio.Event()
        calls = []

        async def slow_submit(record):
            calls.append(record)
            await release.wait()
            return True

        controller._submit = slow_submit
        fill(controller)
        await controller.wait_for_checks()

        first = asyncio.create_task(controller.submit())
        await asyncio.sleep(0.01)
        assert controller.status == FormStatus.SUBMITTING

        second = await controller.submit()
        assert second.status == FormStatus.SUBMITTING

        release.set()
        result = await first
        assert result.status == FormStatus.SUBMITTED
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_status_sequence(self, controller):
        fill(controller)
        await controller.wait_for_checks()
        seen = []
        controller.status_changes.subscribe(seen.append, replay=False)

        await controller.submit()
        assert seen == [
            FormStatus.VALIDATING,
            FormStatus.VALID,
            FormStatus.SUBMITTING,
            FormStatus.SUBMITTED,
        ]

    @pytest.mark.asyncio
    async def test_broken_notifier_does_not_break_submission(self, controller, notifier):
        notifier.notify.side_effect = RuntimeError("toast failed")
        fill(controller)
        await controller.wait_for_checks()

        result = await controller.submit()
        assert result.status == FormStatus.SUBMITTED

    def test_result_to_dict(self):
        result = SubmissionResult(
            status=FormStatus.INVALID,
            errors={"email": {"required": True}},
            pending=True,
        )
        assert result.to_dict() == {
            "status": "invalid",
            "errors": {"email": {"required": True}},
            "pending": True,
        }


# =============================================================================
# Blur-committed Fields
# =============================================================================


@pytest.fixture
def blur_controller(oracle, submit):
    form = FormRecord(
        name="profile",
        fields=[
            FieldState(
                name="nickname",
                rules=(rules.required(), rules.MinLength(3)),
                update_on=UPDATE_ON_BLUR,
            )
        ],
        arrays=[FormArray("extra_phones", lambda: FormRecord(name="extra_phones"))],
    )
    return RegistrationController(form=form, oracle=oracle, submit=submit)


class TestBlurFields:
    def test_edit_is_held_until_touch(self, blur_controller):
        blur_controller.set_value("nickname", "pepe")
        assert blur_controller.value("nickname") == ""
        assert blur_controller.errors("nickname") == {"required": True}

        blur_controller.touch("nickname")
        assert blur_controller.value("nickname") == "pepe"
        assert blur_controller.errors("nickname") == {}
        assert blur_controller.status == FormStatus.VALID

    @pytest.mark.asyncio
    async def test_submit_commits_staged_values(self, blur_controller, submit):
        blur_controller.set_value("nickname", "pepe")

        result = await blur_controller.submit()
        assert result.status == FormStatus.SUBMITTED
        assert submit.await_args.args[0]["nickname"] == "pepe"


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_reset(self, controller):
        fill(controller)
        seen = []
        controller.status_changes.subscribe(seen.append, replay=False)

        controller.reset()
        assert seen == [FormStatus.EDITING]
        assert controller.value("first_name") == ""
        assert not controller.pending
        assert not controller.runner.outstanding

    @pytest.mark.asyncio
    async def test_dispose_cancels_checks(self, controller, oracle):
        controller.set_value("email", "new@example.com")
        assert controller.runner.outstanding

        controller.dispose()
        assert not controller.runner.outstanding
        await asyncio.sleep(0.05)
        assert list(oracle.calls) == []

    @pytest.mark.asyncio
    async def test_default_oracle(self, submit, fast_settings):
        controller = RegistrationController.for_registration(submit, settings=fast_settings)
        assert isinstance(controller.runner.oracle, InMemoryAvailabilityOracle)
        assert controller.runner.oracle.latency == 0
        controller.dispose()

    def test_record_shape_matches_fixture(self, controller):
        for path in VALID_RECORD:
            controller.field(path)
