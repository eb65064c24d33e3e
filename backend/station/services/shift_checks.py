"""
Tri-state policy checks for the shift lifecycle.

Some rules have two severity tiers for the same measurement (meter drift,
shift duration). Each check returns OK, WARN or BLOCK with a message so the
caller decides whether to log and continue or abort.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..validation import format_liters
from station.time_utils import elapsed_hours


CHECK_OK = "OK"
CHECK_WARN = "WARN"
CHECK_BLOCK = "BLOCK"


@dataclass(frozen=True)
class CheckResult:
    level: str
    message: str | None = None
    details: dict = field(default_factory=dict)

    @classmethod
    def ok(cls) -> "CheckResult":
        return cls(CHECK_OK)

    @classmethod
    def warn(cls, message: str, **details) -> "CheckResult":
        return cls(CHECK_WARN, message, details)

    @classmethod
    def block(cls, message: str, **details) -> "CheckResult":
        return cls(CHECK_BLOCK, message, details)

    @property
    def is_ok(self) -> bool:
        return self.level == CHECK_OK

    @property
    def is_warning(self) -> bool:
        return self.level == CHECK_WARN

    @property
    def is_blocking(self) -> bool:
        return self.level == CHECK_BLOCK


def check_index_continuity(
    last_index_end: Decimal | None,
    index_start: Decimal,
    tolerance: Decimal | float = 0,
) -> CheckResult:
    """
    Compare a new start reading with the previous shift's end reading.

    A difference means liters went through the nozzle outside any shift (or
    a misread meter). It never blocks: the hard rule is the nozzle's
    current index, checked separately.
    """
    if last_index_end is None:
        return CheckResult.ok()

    gap = Decimal(index_start) - Decimal(last_index_end)
    if abs(gap) <= Decimal(str(tolerance)):
        return CheckResult.ok()

    if gap > 0:
        message = (
            f"Meter gap of {format_liters(gap)} L between last shift end "
            f"({format_liters(last_index_end)}) and new start ({format_liters(index_start)})"
        )
    else:
        message = (
            f"Start index {format_liters(index_start)} is below the last shift end "
            f"({format_liters(last_index_end)})"
        )
    return CheckResult.warn(
        message,
        expected_index=str(last_index_end),
        actual_index=str(index_start),
        gap=str(gap),
    )


def check_index_not_below(current: Decimal, proposed: Decimal, what: str) -> CheckResult:
    """Meter readings never go backwards."""
    if Decimal(proposed) < Decimal(current):
        return CheckResult.block(
            f"{what} ({format_liters(proposed)}) cannot be lower than {format_liters(current)}",
            current=str(current),
            proposed=str(proposed),
        )
    return CheckResult.ok()


def check_shift_duration(
    started_at: datetime,
    ended_at: datetime,
    warn_hours: float,
    block_hours: float,
) -> CheckResult:
    """WARN past warn_hours, BLOCK past block_hours."""
    hours = elapsed_hours(started_at, ended_at)
    if hours > block_hours:
        return CheckResult.block(
            f"Shift lasted {hours:.1f} h, above the {block_hours:g} h maximum; a manager must close it",
            hours=round(hours, 2),
            limit_hours=block_hours,
        )
    if hours > warn_hours:
        return CheckResult.warn(
            f"Shift lasted {hours:.1f} h, above the {warn_hours:g} h warning threshold",
            hours=round(hours, 2),
            limit_hours=warn_hours,
        )
    return CheckResult.ok()
