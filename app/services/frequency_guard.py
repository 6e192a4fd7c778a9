"""One-entry-per-period and lock-after-report checks for entry create/update."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from app.models.kpi_entry import EntryFilter, EntryStatus, KpiEntry
from app.models.kpi_template import Frequency, KpiTemplate
from app.services import db
from app.services.errors import EntryLocked, PeriodConflict, ReportAlreadyGenerated, UpdateWindowClosed
from app.services.periods import period_window, same_period

logger = logging.getLogger(__name__)


def generation_blocks_creation(
    generated_entry: Optional[KpiEntry],
    frequency: Frequency,
    now: datetime,
) -> bool:
    """Policy: does an existing generated entry forbid a new one?

    Current behaviour is a permanent lock: once any entry for the
    (template, member) pair has been reported, no further entries are accepted,
    whatever period `now` falls in. Re-opening at the next period boundary would
    be `not same_period(frequency, generated_entry.created_at, now)`.
    """
    return generated_entry is not None


async def has_entry_in_period(
    template_id: str,
    member_id: str,
    frequency: Frequency,
    now: Optional[datetime] = None,
) -> bool:
    start, end = period_window(frequency, now)
    existing = await db.find_one_entry(EntryFilter(
        kpi_template_id=template_id,
        created_for=[member_id],
        created_from=start,
        created_to=end,
    ))
    return existing is not None


async def ensure_can_create(template: KpiTemplate, member_id: str, now: Optional[datetime] = None) -> None:
    """Raise PeriodConflict or ReportAlreadyGenerated when a new entry is not allowed.

    This is an early check only; two concurrent creates can both pass it, and
    the store's period-bucket uniqueness decides between them.
    """
    now = now or datetime.now(timezone.utc)
    if await has_entry_in_period(template.id, member_id, template.frequency, now):
        logger.info("Period conflict for template %s, member %s (%s)", template.id, member_id, template.frequency.value)
        raise PeriodConflict(template.frequency.value)

    await ensure_not_reported(template, member_id, now)


async def ensure_not_reported(template: KpiTemplate, member_id: str, now: Optional[datetime] = None) -> None:
    """Raise ReportAlreadyGenerated when the (template, member) pair is locked by a report."""
    now = now or datetime.now(timezone.utc)
    generated = await db.find_one_entry(EntryFilter(
        kpi_template_id=template.id,
        created_for=[member_id],
        status=EntryStatus.generated,
    ))
    if generation_blocks_creation(generated, template.frequency, now):
        logger.info("Template %s already reported for member %s", template.id, member_id)
        raise ReportAlreadyGenerated()


def ensure_not_locked(entry: KpiEntry) -> None:
    if entry.status is EntryStatus.generated:
        raise EntryLocked()


def ensure_can_update(entry: KpiEntry, template: KpiTemplate, now: Optional[datetime] = None) -> None:
    """Raise EntryLocked for generated entries, UpdateWindowClosed once the period is over."""
    ensure_not_locked(entry)
    now = now or datetime.now(timezone.utc)
    if not same_period(template.frequency, entry.created_at, now):
        raise UpdateWindowClosed(template.frequency.value)
