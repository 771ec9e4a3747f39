"""Unit tests for appointment transition and date rules."""

from datetime import UTC, datetime, timedelta

import pytest

from app.core.exceptions import InvalidDateWindowException
from app.schemas.appointments import AppointmentStatus, AppointmentType
from app.services.appointment_service import (
    ALLOWED_TRANSITIONS,
    is_transition_allowed,
    normalize_type,
    validate_date_window,
)

S = AppointmentStatus

ALLOWED = {
    (S.PENDING, S.APPROVED),
    (S.PENDING, S.REJECTED),
    (S.APPROVED, S.COMPLETED),
    (S.APPROVED, S.CANCELED),
    (S.APPROVED, S.PENDING),
}


class TestTransitions:
    """Doctor-driven status changes."""

    @pytest.mark.parametrize("current", list(S))
    @pytest.mark.parametrize("requested", list(S))
    def test_matrix(self, current, requested):
        assert is_transition_allowed(current, requested) is ((current, requested) in ALLOWED)

    @pytest.mark.parametrize("terminal", [S.REJECTED, S.COMPLETED, S.CANCELED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert ALLOWED_TRANSITIONS[terminal] == frozenset()


class TestDateWindow:
    """The 30-day booking window."""

    NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def test_past_rejected(self):
        with pytest.raises(InvalidDateWindowException, match="past"):
            validate_date_window(self.NOW - timedelta(seconds=1), now=self.NOW)

    def test_now_accepted(self):
        validate_date_window(self.NOW, now=self.NOW)

    def test_exactly_thirty_days_accepted(self):
        validate_date_window(self.NOW + timedelta(days=30), now=self.NOW)

    def test_beyond_thirty_days_rejected(self):
        with pytest.raises(InvalidDateWindowException, match="30 days"):
            validate_date_window(self.NOW + timedelta(days=30, seconds=1), now=self.NOW)

    def test_naive_dates_are_utc(self):
        validate_date_window(datetime(2026, 3, 31, 12, 0), now=self.NOW)


class TestNormalizeType:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("VIDEO_CALL", AppointmentType.VIDEO_CALL),
            ("video_call", AppointmentType.VIDEO_CALL),
            (" online ", AppointmentType.ONLINE),
            ("telepathy", AppointmentType.IN_PERSON),
            (None, AppointmentType.IN_PERSON),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_type(raw) == expected
