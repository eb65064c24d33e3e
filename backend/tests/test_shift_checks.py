"""
Unit tests for the tri-state shift checks (no database).
"""

from datetime import datetime, timedelta
from decimal import Decimal

from station.services.shift_checks import (
    CHECK_BLOCK,
    CHECK_OK,
    CHECK_WARN,
    check_index_continuity,
    check_index_not_below,
    check_shift_duration,
)


START = datetime(2026, 3, 1, 6, 0, 0)


class TestIndexContinuity:
    def test_first_shift_on_nozzle_is_ok(self):
        assert check_index_continuity(None, Decimal("1000.00")).is_ok

    def test_matching_reading_is_ok(self):
        assert check_index_continuity(Decimal("1050.00"), Decimal("1050.00")).level == CHECK_OK

    def test_gap_warns_with_both_readings(self):
        result = check_index_continuity(Decimal("1050.00"), Decimal("1060.00"))
        assert result.level == CHECK_WARN
        assert "1050.00" in result.message
        assert "1060.00" in result.message
        assert result.details["gap"] == "10.00"

    def test_reading_below_last_end_warns_but_never_blocks(self):
        result = check_index_continuity(Decimal("1050.00"), Decimal("1049.00"))
        assert result.is_warning
        assert not result.is_blocking

    def test_tolerance_absorbs_small_drift(self):
        assert check_index_continuity(Decimal("1050.00"), Decimal("1050.40"), 0.5).is_ok
        assert check_index_continuity(Decimal("1050.00"), Decimal("1050.60"), 0.5).is_warning


class TestIndexNotBelow:
    def test_equal_reading_is_ok(self):
        assert check_index_not_below(Decimal("1000.00"), Decimal("1000.00"), "End index").is_ok

    def test_regression_blocks(self):
        result = check_index_not_below(Decimal("1000.00"), Decimal("999.99"), "End index")
        assert result.level == CHECK_BLOCK
        assert result.message == "End index (999.99) cannot be lower than 1000.00"


class TestShiftDuration:
    def test_normal_shift_is_ok(self):
        assert check_shift_duration(START, START + timedelta(hours=8), 12, 24).is_ok

    def test_exactly_on_warn_threshold_is_ok(self):
        assert check_shift_duration(START, START + timedelta(hours=12), 12, 24).is_ok

    def test_long_shift_warns(self):
        result = check_shift_duration(START, START + timedelta(hours=13), 12, 24)
        assert result.is_warning
        assert result.details["limit_hours"] == 12

    def test_excessive_shift_blocks(self):
        result = check_shift_duration(START, START + timedelta(hours=25), 12, 24)
        assert result.is_blocking
        assert "24 h maximum" in result.message
