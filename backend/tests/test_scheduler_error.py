import pytest

from app.core.exceptions import (
    AppError,
    DoubleBookingError,
    InvalidAssignmentError,
    InvalidTemplateError,
    ResourceNotFoundError,
    SchedulerError,
    SchedulingInfeasibleError,
    SchedulingTimeoutError,
)


def test_scheduler_error_structure():
    err = SchedulerError(message="Test error", details={"foo": "bar"})
    assert err.status_code == 400
    assert err.message == "Test error"
    assert err.details == {"foo": "bar"}
    assert isinstance(err, AppError)


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}


@pytest.mark.parametrize(
    ("error_type", "status_code", "reason_code"),
    [
        (InvalidTemplateError, 400, "invalid_template"),
        (InvalidAssignmentError, 400, "invalid_assignment"),
        (SchedulingInfeasibleError, 422, "infeasible"),
        (SchedulingTimeoutError, 422, "timeout"),
        (DoubleBookingError, 409, "double_booking"),
    ],
)
def test_engine_errors_carry_status_and_reason(error_type, status_code, reason_code):
    err = error_type("boom")
    assert isinstance(err, SchedulerError)
    assert err.status_code == status_code
    assert err.reason_code == reason_code


def test_not_found_message():
    err = ResourceNotFoundError("Timetable", "t-1")
    assert err.status_code == 404
    assert err.message == "Timetable with id t-1 not found"
