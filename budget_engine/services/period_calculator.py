"""Period calculator: maps a period unit and an anchor date to a ``[start, end)`` window.

All windows are half-open. ``end`` is the first day that is NOT part of the
period, for every unit.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta


class PeriodUnit(str, Enum):
    """Budget period unit."""

    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


@dataclass(frozen=True)
class Period:
    """A half-open date window."""

    unit: PeriodUnit
    start: date
    end: date

    def contains(self, day: date) -> bool:
        """Return True if ``day`` falls inside the window."""
        return self.start <= day < self.end

    @property
    def label(self) -> str:
        """Short human-readable label, e.g. ``2025-02``, ``2025-W06`` or ``2025-01..2025-03``."""
        if self.unit == PeriodUnit.WEEKLY:
            year, week, _ = self.start.isocalendar()
            return f"{year}-W{week:02d}"
        if self.unit == PeriodUnit.QUARTERLY:
            return f"{self.start:%Y-%m}..{(self.end - timedelta(days=1)):%Y-%m}"
        if self.unit == PeriodUnit.YEARLY:
            return f"{self.start:%Y}"
        return f"{self.start:%Y-%m}"


def default_anchor(today: date) -> date:
    """First day of ``today``'s month."""
    return today.replace(day=1)


def calculate_period(unit: PeriodUnit | str, anchor: date) -> Period:
    """Compute the window a budget of ``unit`` covers when anchored at ``anchor``.

    WEEKLY windows start on the anchor itself and last seven days. The other
    units start on the first day of the anchor's month:

    - MONTHLY ends on the first day of the next month
    - QUARTERLY ends on the first day three months later
    - YEARLY ends on January 1st of the following year

    Args:
        unit: Period unit
        anchor: Anchor date

    Returns:
        Period: The computed window
    """
    unit = PeriodUnit(unit)

    if unit == PeriodUnit.WEEKLY:
        return Period(unit=unit, start=anchor, end=anchor + timedelta(days=7))

    start = anchor.replace(day=1)
    if unit == PeriodUnit.MONTHLY:
        end = start + relativedelta(months=1)
    elif unit == PeriodUnit.QUARTERLY:
        end = start + relativedelta(months=3)
    else:
        end = date(start.year + 1, 1, 1)

    return Period(unit=unit, start=start, end=end)


def resolve_period(
    unit: PeriodUnit | str, today: date, anchor: Optional[date] = None
) -> Period:
    """Compute the period for an explicit anchor, or the default anchor of ``today``."""
    return calculate_period(unit, anchor or default_anchor(today))


def previous_period(unit: PeriodUnit | str, start: date) -> Period:
    """Window immediately preceding a period that starts on ``start``."""
    unit = PeriodUnit(unit)

    if unit == PeriodUnit.WEEKLY:
        return Period(unit=unit, start=start - timedelta(days=7), end=start)
    if unit == PeriodUnit.MONTHLY:
        return Period(unit=unit, start=start - relativedelta(months=1), end=start)
    if unit == PeriodUnit.QUARTERLY:
        return Period(unit=unit, start=start - relativedelta(months=3), end=start)
    return Period(unit=unit, start=date(start.year - 1, 1, 1), end=start)
