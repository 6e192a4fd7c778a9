"""Error taxonomy surfaced to callers.

Every `KpiError` carries a status classification (`status_code`, `kind`), a short
title and a human message. The FastAPI app renders them in one exception handler.
"""
from __future__ import annotations


class KpiError(Exception):
    status_code = 500
    kind = "error"
    title = "KPI error"

    def __init__(self, message: str, title: str | None = None):
        super().__init__(message)
        self.message = message
        if title:
            self.title = title

    def to_dict(self) -> dict:
        return {"title": self.title, "message": self.message, "kind": self.kind}


class InvalidFrequency(ValueError):
    """Unrecognised frequency value. A programming error, not user input."""


# ── NotFound ──────────────────────────────────────────────────────────────────

class NotFound(KpiError):
    status_code = 404
    kind = "not_found"
    title = "Not found"


class TemplateNotFound(NotFound):
    title = "KPI template not found"

    def __init__(self, template_id: str):
        super().__init__(f"KPI template not found: {template_id}")
        self.template_id = template_id


class MemberNotFound(NotFound):
    title = "Member not found"

    def __init__(self, user_id: str):
        super().__init__(f"Member not found: {user_id}")
        self.user_id = user_id


class EntryNotFound(NotFound):
    title = "KPI entry not found"

    def __init__(self, entry_id: str):
        super().__init__(f"KPI entry not found: {entry_id}")
        self.entry_id = entry_id


# ── Conflict ──────────────────────────────────────────────────────────────────

class Conflict(KpiError):
    status_code = 409
    kind = "conflict"
    title = "Conflict"


class PeriodConflict(Conflict):
    title = "KPI entry already exists for this period"

    def __init__(self, frequency: str):
        super().__init__(
            f"A KPI entry already exists for {frequency} period. "
            f"Only one entry is allowed per {frequency} period."
        )
        self.frequency = frequency


class ReportAlreadyGenerated(Conflict):
    title = "Generated KPI entry exists"

    def __init__(self):
        super().__init__(
            "A generated KPI entry already exists for this member and template. "
            "No new entries can be created after report generation."
        )


class DuplicateEntry(Conflict):
    title = "Duplicate KPI entry"

    def __init__(self, period_key: str):
        super().__init__(f"A KPI entry for period {period_key} was stored concurrently.")
        self.period_key = period_key


# ── Validation ────────────────────────────────────────────────────────────────

class ValidationFailed(KpiError):
    status_code = 400
    kind = "validation"
    title = "Validation failed"


class MissingRequiredValues(ValidationFailed):
    title = "Missing required values"

    def __init__(self, missing: list[str]):
        super().__init__(
            f"Missing required values for non-dynamic KPIs: {', '.join(missing)}. "
            "All KPI items with is_dynamic false must be provided in the entry."
        )
        self.missing = missing


class MissingBypassScore(ValidationFailed):
    title = "Missing score field"

    def __init__(self, name: str):
        super().__init__(f"Bypassed KPI {name} must have a score field")
        self.name = name


class InvalidValueType(ValidationFailed):
    title = "Invalid value type"

    def __init__(self, name: str, expected: str, got: object):
        super().__init__(f"KPI {name} expects {expected} value, got {type(got).__name__}")
        self.name = name
        self.expected = expected


# ── Locked ────────────────────────────────────────────────────────────────────

class Locked(KpiError):
    status_code = 400
    kind = "locked"
    title = "Update not allowed"


class EntryLocked(Locked):
    def __init__(self):
        super().__init__(
            "Cannot update KPI entries that have been generated. "
            "The entry has been finalized and locked."
        )


class UpdateWindowClosed(Locked):
    def __init__(self, frequency: str):
        super().__init__(f"Updates are not allowed after the {frequency} period has ended.")
        self.frequency = frequency


# ── BadRequest ────────────────────────────────────────────────────────────────

class BadRequest(KpiError):
    status_code = 400
    kind = "bad_request"
    title = "Bad request"
