from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel

from app.models.kpi_template import KpiValue


class EntryStatus(str, Enum):
    initiated = "initiated"
    generated = "generated"   # terminal, set only by report generation


class EntryValueIn(BaseModel):
    """A value as submitted. `score` is only honoured when `is_by_passed` is set."""

    name: str
    value: KpiValue
    score: Optional[float] = None
    comments: Optional[str] = None
    is_by_passed: bool = False


class EntryValue(BaseModel):
    name: str
    value: KpiValue
    score: float
    comments: Optional[str] = None
    is_by_passed: bool = False


class KpiEntry(BaseModel):
    id: str
    kpi_template_id: str
    created_for: str     # member user id
    created_by: str      # submitter user id, or "system"
    values: list[EntryValue] = []
    total_score: float = 0
    status: EntryStatus = EntryStatus.initiated
    period_key: str = ""  # e.g. "monthly:2025-02-01", unique per (template, member)
    created_at: datetime
    updated_at: datetime


class KpiEntryCreate(BaseModel):
    kpi_template_id: str
    created_for: str
    values: list[EntryValueIn]


class KpiEntryUpdate(BaseModel):
    values: Optional[list[EntryValueIn]] = None


class SystemValue(BaseModel):
    name: str
    value: KpiValue
    source: str
    score: Optional[float] = None


class SystemEntryCreate(BaseModel):
    kpi_template_id: str
    user_id: str
    system_values: list[SystemValue]


class EntryFilter(BaseModel):
    """Conjunction of optional conditions over stored entries."""

    ids: Optional[list[str]] = None
    kpi_template_id: Optional[str] = None
    created_for: Optional[list[str]] = None
    created_by: Optional[str] = None
    status: Optional[EntryStatus] = None
    status_ne: Optional[EntryStatus] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    def matches(self, entry: KpiEntry) -> bool:
        if self.ids is not None and entry.id not in self.ids:
            return False
        if self.kpi_template_id is not None and entry.kpi_template_id != self.kpi_template_id:
            return False
        if self.created_for is not None and entry.created_for not in self.created_for:
            return False
        if self.created_by is not None and entry.created_by != self.created_by:
            return False
        if self.status is not None and entry.status != self.status:
            return False
        if self.status_ne is not None and entry.status == self.status_ne:
            return False
        if self.created_from is not None and entry.created_at < self.created_from:
            return False
        if self.created_to is not None and entry.created_at > self.created_to:
            return False
        return True
