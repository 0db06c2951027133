"""Shared fixtures for signupkit tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from signupkit.checks.oracle import InMemoryAvailabilityOracle
from signupkit.config import Settings
from signupkit.controller.registration import RegistrationController


# A complete registration that passes every rule and every availability check
VALID_RECORD = {
    "first_name": "Ana",
    "last_name": "García",
    "national_id": "11111111H",
    "birth_date": "1950-04-12",
    "username": "ana_g",
    "email": "ana@example.com",
    "password": "Abcdef1!",
    "confirm_password": "Abcdef1!",
    "primary_phone": "612345678",
    "accept_terms": True,
    "address.street": "Calle Mayor",
    "address.number": "1",
    "address.postal_code": "28001",
    "address.city": "Madrid",
    "address.province": "Madrid",
}


def fill(controller: RegistrationController, **overrides) -> None:
    """Type every value of VALID_RECORD (with overrides) and leave each field."""
    values = {**VALID_RECORD, **overrides}
    for path, value in values.items():
        controller.set_value(path, value)
        controller.touch(path)


@pytest.fixture
def fast_settings():
    """Settings with debounce windows short enough for tests."""
    return Settings(
        debounce_ms={"emailUnique": 10, "usernameAvailable": 10, "nifUnique": 10},
        oracle_latency_ms=0,
    )


@pytest.fixture
def oracle():
    return InMemoryAvailabilityOracle(latency=0.005)


@pytest.fixture
def submit():
    return AsyncMock(return_value=True)


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def busy():
    return MagicMock()


@pytest.fixture
def controller(submit, oracle, notifier, busy, fast_settings):
    ctrl = RegistrationController.for_registration(
        submit,
        oracle=oracle,
        notifier=notifier,
        busy=busy,
        settings=fast_settings,
    )
    yield ctrl
    ctrl.dispose()
