"""
Tests for the Attendance Adjustment Engine.

Covers:
- Delay tier classification
- Delay penalties per tier
- Paid and unpaid absence
- Daily rate and deduction components
- Deriving delay from clock times
"""

from datetime import datetime, time
from decimal import Decimal

import pytest

from payroll_engines.attendance import (
    attendance_deductions,
    classify_delay,
    compute_adjustment,
    daily_rate_for,
)
from payroll_kernel.domain.rules import AttendancePolicy
from payroll_kernel.domain.types import (
    AttendanceInput,
    DelayTier,
    attendance_input_from_times,
)
from payroll_kernel.domain.values import quantize

POLICY = AttendancePolicy()
DAILY_RATE = Decimal("22000")  # 484000 / 22 working days


class TestClassifyDelay:
    """Tests for classify_delay tier boundaries."""

    @pytest.mark.parametrize("minutes,tier", [
        (0, DelayTier.NONE),
        (1, DelayTier.MINOR),
        (15, DelayTier.MINOR),
        (16, DelayTier.MODERATE),
        (60, DelayTier.MODERATE),
        (61, DelayTier.SEVERE),
        (600, DelayTier.SEVERE),
    ])
    def test_tier_boundaries(self, minutes, tier):
        assert classify_delay(minutes, POLICY) == tier

    def test_custom_policy(self):
        policy = AttendancePolicy(minor_delay_max_minutes=5, moderate_delay_max_minutes=30)
        assert classify_delay(10, policy) == DelayTier.MODERATE
        assert classify_delay(31, policy) == DelayTier.SEVERE


class TestDelayPenalty:
    """Tests for delay penalty amounts."""

    def test_no_delay(self):
        adj = compute_adjustment(
            attendance=AttendanceInput(), daily_rate=DAILY_RATE, policy=POLICY, scale=2
        )
        assert adj.tier == DelayTier.NONE
        assert adj.delay_penalty == Decimal("0.00")
        assert adj.requires_approval is False

    def test_minor_delay_is_warning_only(self):
        adj = compute_adjustment(
            attendance=AttendanceInput(delay_minutes=15),
            daily_rate=DAILY_RATE,
            policy=POLICY,
            scale=2,
        )
        assert adj.tier == DelayTier.MINOR
        assert adj.delay_penalty == Decimal("0.00")
        assert adj.requires_approval is False
        assert adj.requires_justification is False

    def test_minor_delay_flat_penalty(self):
        policy = AttendancePolicy(minor_delay_penalty=Decimal("500"))
        adj = compute_adjustment(
            attendance=AttendanceInput(delay_minutes=5),
            daily_rate=DAILY_RATE,
            policy=policy,
            scale=2,
        )
        assert adj.delay_penalty == Decimal("500.00")

    def test_moderate_delay_pro_rata(self):
        """30 minutes of a 480 minute day at 22000 per day."""
        adj = compute_adjustment(
            attendance=AttendanceInput(delay_minutes=30),
            daily_rate=DAILY_RATE,
            policy=POLICY,
            scale=2,
        )
        assert adj.tier == DelayTier.MODERATE
        assert adj.delay_penalty == Decimal("1375.00")
        assert adj.requires_approval is False
        assert adj.requires_justification is True

    def test_severe_delay_escalates_and_needs_approval(self):
        """120 minutes: 22000 x min(1, 2 x 120 / 480) = 11000."""
        adj = compute_adjustment(
            attendance=AttendanceInput(delay_minutes=120),
            daily_rate=DAILY_RATE,
            policy=POLICY,
            scale=2,
        )
        assert adj.tier == DelayTier.SEVERE
        assert adj.delay_penalty == Decimal("11000.00")
        assert adj.requires_approval is True

    def test_severe_delay_capped_at_one_day(self):
        adj = compute_adjustment(
            attendance=AttendanceInput(delay_minutes=400),
            daily_rate=DAILY_RATE,
            policy=POLICY,
            scale=2,
        )
        assert adj.delay_penalty == Decimal("22000.00")

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            compute_adjustment(
                attendance=AttendanceInput(delay_minutes=-5),
                daily_rate=DAILY_RATE,
                policy=POLICY,
                scale=2,
            )


class TestAbsence:
    """Tests for absence deductions."""

    def test_unpaid_absence_deducted(self):
        adj = compute_adjustment(
            attendance=AttendanceInput(absence_days=Decimal("2")),
            daily_rate=DAILY_RATE,
            policy=POLICY,
            scale=2,
        )
        assert adj.absence_deduction == Decimal("44000.00")
        assert adj.paid_absence_days == Decimal("0")

    def test_half_day_absence(self):
        adj = compute_adjustment(
            attendance=AttendanceInput(absence_days=Decimal("0.5")),
            daily_rate=DAILY_RATE,
            policy=POLICY,
            scale=2,
        )
        assert adj.absence_deduction == Decimal("11000.00")

    def test_paid_absence_not_deducted_but_reported(self):
        adj = compute_adjustment(
            attendance=AttendanceInput(absence_days=Decimal("3"), is_paid_absence=True),
            daily_rate=DAILY_RATE,
            policy=POLICY,
            scale=2,
        )
        assert adj.absence_deduction == Decimal("0.00")
        assert adj.paid_absence_days == Decimal("3")
        assert adj.absence_days == Decimal("3")

    def test_input_not_mutated(self):
        attendance = AttendanceInput(delay_minutes=90, absence_days=Decimal("1"))
        compute_adjustment(
            attendance=attendance, daily_rate=DAILY_RATE, policy=POLICY, scale=2
        )
        assert attendance == AttendanceInput(delay_minutes=90, absence_days=Decimal("1"))

    def test_total(self):
        adj = compute_adjustment(
            attendance=AttendanceInput(delay_minutes=30, absence_days=Decimal("1")),
            daily_rate=DAILY_RATE,
            policy=POLICY,
            scale=2,
        )
        assert adj.total == Decimal("23375.00")


class TestDeductionHelpers:
    """Daily rate and per-component deductions used for net estimates."""

    def test_daily_rate_over_working_days(self):
        assert daily_rate_for(Decimal("484000"), POLICY) == DAILY_RATE
        assert quantize(daily_rate_for(Decimal("500000"), POLICY), 2) == Decimal("22727.27")

    @pytest.mark.parametrize("attendance", [
        AttendanceInput(delay_minutes=30, absence_days=Decimal("1")),
        AttendanceInput(delay_minutes=90, absence_days=Decimal("0.5")),
        AttendanceInput(delay_minutes=10, absence_days=Decimal("3"), is_paid_absence=True),
    ])
    def test_components_match_adjustment(self, attendance):
        penalty, absence = attendance_deductions(attendance, DAILY_RATE, POLICY, scale=2)
        adj = compute_adjustment(
            attendance=attendance, daily_rate=DAILY_RATE, policy=POLICY, scale=2
        )
        assert penalty == adj.delay_penalty
        assert absence == adj.absence_deduction


class TestAttendanceFromTimes:
    """Tests for attendance_input_from_times."""

    def test_fifteen_minutes_late_is_minor(self):
        attendance = attendance_input_from_times(time(8, 0), time(8, 15))
        assert attendance.delay_minutes == 15

        adj = compute_adjustment(
            attendance=attendance, daily_rate=DAILY_RATE, policy=POLICY, scale=2
        )
        assert adj.tier == DelayTier.MINOR
        assert adj.delay_penalty == Decimal("0.00")
        assert adj.requires_approval is False

    def test_early_arrival_is_zero_delay(self):
        assert attendance_input_from_times(time(8, 0), time(7, 45)).delay_minutes == 0

    def test_seconds_truncated(self):
        assert attendance_input_from_times(time(8, 0), time(8, 15, 59)).delay_minutes == 15

    def test_datetimes(self):
        attendance = attendance_input_from_times(
            datetime(2024, 1, 8, 8, 0), datetime(2024, 1, 8, 9, 30), absence_days=1
        )
        assert attendance.delay_minutes == 90
        assert attendance.absence_days == Decimal("1")

    def test_mixed_types_rejected(self):
        with pytest.raises(TypeError):
            attendance_input_from_times(time(8, 0), datetime(2024, 1, 8, 8, 5))
