"""Calendar windows for template frequencies.

All windows are inclusive on both ends and end one millisecond before the next
period starts. Weeks start on Monday. The reference's tzinfo is preserved.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from app.models.kpi_template import Frequency
from app.services.errors import InvalidFrequency

_ONE_MS = timedelta(milliseconds=1)


def _as_frequency(frequency: Frequency | str) -> Frequency:
    try:
        return Frequency(frequency)
    except ValueError:
        raise InvalidFrequency(f"Invalid frequency: {frequency}") from None


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _month_start(moment: datetime, year: int, month: int) -> datetime:
    # month may overflow past 12 by one step when computing the next period
    if month > 12:
        year, month = year + 1, month - 12
    return _midnight(moment).replace(year=year, month=month, day=1)


def period_window(
    frequency: Frequency | str,
    reference: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """Return the inclusive (start, end) of the period containing `reference`."""
    freq = _as_frequency(frequency)
    ref = reference or datetime.now(timezone.utc)

    if freq is Frequency.daily:
        start = _midnight(ref)
        next_start = start + timedelta(days=1)
    elif freq is Frequency.weekly:
        # weekday(): Monday=0 … Sunday=6, i.e. days since Monday
        start = _midnight(ref - timedelta(days=ref.weekday()))
        next_start = start + timedelta(days=7)
    elif freq is Frequency.monthly:
        start = _month_start(ref, ref.year, ref.month)
        next_start = _month_start(ref, ref.year, ref.month + 1)
    elif freq is Frequency.quarterly:
        first_month = quarter_of(ref) * 3 + 1
        start = _month_start(ref, ref.year, first_month)
        next_start = _month_start(ref, ref.year, first_month + 3)
    else:
        start = _month_start(ref, ref.year, 1)
        next_start = _month_start(ref, ref.year + 1, 1)

    return start, next_start - _ONE_MS


def quarter_of(moment: datetime) -> int:
    """Zero-based quarter index (Jan-Mar = 0)."""
    return (moment.month - 1) // 3


def same_period(frequency: Frequency | str, first: datetime, second: datetime) -> bool:
    """True when both instants fall in the same period of `frequency`."""
    freq = _as_frequency(frequency)
    if first.tzinfo is not None and second.tzinfo is not None:
        second = second.astimezone(first.tzinfo)

    if freq is Frequency.daily:
        return first.date() == second.date()
    if freq is Frequency.weekly:
        return first.isocalendar()[:2] == second.isocalendar()[:2]
    if freq is Frequency.monthly:
        return (first.year, first.month) == (second.year, second.month)
    if freq is Frequency.quarterly:
        return (first.year, quarter_of(first)) == (second.year, quarter_of(second))
    return first.year == second.year


def period_key(frequency: Frequency | str, reference: Optional[datetime] = None) -> str:
    """Storage bucket label, e.g. ``weekly:2025-02-17``."""
    freq = _as_frequency(frequency)
    start, _ = period_window(freq, reference)
    return f"{freq.value}:{start.date().isoformat()}"
