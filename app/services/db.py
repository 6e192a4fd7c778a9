"""Async data access layer. Reads from Supabase when configured, falls back to in-memory storage.

Every function suspends only around the store round-trip; callers hold no locks
across these awaits. Uniqueness of (template, member, period bucket) is enforced
here, at the store.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi.encoders import jsonable_encoder
from tenacity import retry, retry_if_exception, stop_after_attempt

from app.config import AUDIT_TABLE, ENTRIES_TABLE, MEMBERS_TABLE, TEMPLATES_TABLE
from app.models.audit import AuditRecord
from app.models.kpi_entry import EntryFilter, EntryStatus, KpiEntry
from app.models.kpi_template import KpiTemplate
from app.models.member import Member, MemberQuery
from app.services.errors import DuplicateEntry
from app.services.supabase_client import get_supabase, reset_supabase

logger = logging.getLogger(__name__)

# Lazy import: the storage module is only needed for the fallback path
_storage = None

_UNIQUE_VIOLATION = "23505"


def _get_storage():
    global _storage
    if _storage is None:
        from app.services import storage as _s
        _storage = _s
    return _storage


def _is_stale_connection(exc: BaseException) -> bool:
    # httpx.ReadError / httpcore.ReadError without a hard import
    return any(c.__name__ == "ReadError" for c in type(exc).__mro__)


def _reset_before_retry(retry_state) -> None:
    logger.warning(
        "Supabase ReadError (stale HTTP/2 connection), resetting client and retrying: %s",
        retry_state.outcome.exception(),
    )
    reset_supabase()


@retry(
    stop=stop_after_attempt(2),
    retry=retry_if_exception(_is_stale_connection),
    before_sleep=_reset_before_retry,
    reraise=True,
)
async def _db_query(fn):
    """Run a sync Supabase query in a thread. `fn` receives the (possibly fresh) client."""
    sb = get_supabase()
    return await asyncio.to_thread(fn, sb)


# ── Templates ─────────────────────────────────────────────────────────────────

async def get_template(template_id: str) -> Optional[KpiTemplate]:
    if not get_supabase():
        return _get_storage().TEMPLATES.get(template_id)

    def _query(sb):
        return sb.table(TEMPLATES_TABLE).select("*").eq("id", template_id).execute().data

    rows = await _db_query(_query)
    return KpiTemplate(**rows[0]) if rows else None


# ── Members ───────────────────────────────────────────────────────────────────

async def get_member(user_id: str) -> Optional[Member]:
    if not get_supabase():
        return _get_storage().MEMBERS.get(user_id)

    def _query(sb):
        return sb.table(MEMBERS_TABLE).select("*").eq("user_id", user_id).execute().data

    rows = await _db_query(_query)
    return Member(**rows[0]) if rows else None


def _ilike_clause(field: str, pattern: str) -> str:
    escaped = pattern.replace("\\", "\\\\").replace('"', '\\"')
    return f'{field}.ilike."*{escaped}*"'


async def find_members(query: MemberQuery, page: int = 1, limit: int = 10) -> tuple[list[Member], int]:
    """Return one page of members matching `query`, plus the total match count."""
    skip = max(page - 1, 0) * limit
    if not get_supabase():
        matched = [m for m in _get_storage().MEMBERS.values() if query.matches(m)]
        return matched[skip: skip + limit], len(matched)

    def _query(sb):
        q = sb.table(MEMBERS_TABLE).select("*", count="exact")
        if query.text_filters:
            q = q.or_(",".join(_ilike_clause(f.field, f.pattern) for f in query.text_filters))
        for f in query.exact_filters:
            q = q.eq(f.field, f.value)
        return q.order("user_id").range(skip, skip + limit - 1).execute()

    resp = await _db_query(_query)
    return [Member(**r) for r in resp.data], resp.count or 0


# ── Entries ───────────────────────────────────────────────────────────────────

def _apply_entry_filter(q, flt: EntryFilter):
    if flt.ids is not None:
        q = q.in_("id", flt.ids)
    if flt.kpi_template_id is not None:
        q = q.eq("kpi_template_id", flt.kpi_template_id)
    if flt.created_for is not None:
        q = q.in_("created_for", flt.created_for)
    if flt.created_by is not None:
        q = q.eq("created_by", flt.created_by)
    if flt.status is not None:
        q = q.eq("status", flt.status.value)
    if flt.status_ne is not None:
        q = q.neq("status", flt.status_ne.value)
    if flt.created_from is not None:
        q = q.gte("created_at", flt.created_from.isoformat())
    if flt.created_to is not None:
        q = q.lte("created_at", flt.created_to.isoformat())
    return q


def _is_empty_filter(flt: EntryFilter) -> bool:
    # `in ()` can never match; skip the round-trip
    return (flt.ids is not None and not flt.ids) or (flt.created_for is not None and not flt.created_for)


async def get_entry(entry_id: str) -> Optional[KpiEntry]:
    return await find_one_entry(EntryFilter(ids=[entry_id]))


async def find_one_entry(flt: EntryFilter) -> Optional[KpiEntry]:
    entries = await find_entries(flt, limit=1)
    return entries[0] if entries else None


async def find_entries(flt: EntryFilter, skip: int = 0, limit: Optional[int] = None) -> list[KpiEntry]:
    """Matching entries, oldest first. `skip` only applies together with `limit`."""
    if _is_empty_filter(flt):
        return []
    if not get_supabase():
        entries = [e for e in _get_storage().ENTRIES.values() if flt.matches(e)]
        entries.sort(key=lambda e: e.created_at)
        return entries[skip: skip + limit] if limit is not None else entries

    def _query(sb):
        q = _apply_entry_filter(sb.table(ENTRIES_TABLE).select("*"), flt).order("created_at")
        if limit is not None:
            q = q.range(skip, skip + limit - 1)
        return q.execute().data

    rows = await _db_query(_query)
    return [KpiEntry(**r) for r in rows]


async def count_entries(flt: EntryFilter) -> int:
    if _is_empty_filter(flt):
        return 0
    if not get_supabase():
        return sum(1 for e in _get_storage().ENTRIES.values() if flt.matches(e))

    def _query(sb):
        return _apply_entry_filter(sb.table(ENTRIES_TABLE).select("id", count="exact"), flt).execute()

    resp = await _db_query(_query)
    return resp.count or 0


async def create_entry(entry: KpiEntry) -> KpiEntry:
    """Insert a new entry. Raises DuplicateEntry when its period bucket is already taken."""
    if not get_supabase():
        entries = _get_storage().ENTRIES
        # check-and-insert with no await in between
        for existing in entries.values():
            if (
                entry.period_key
                and existing.kpi_template_id == entry.kpi_template_id
                and existing.created_for == entry.created_for
                and existing.period_key == entry.period_key
            ):
                raise DuplicateEntry(entry.period_key)
        entries[entry.id] = entry
        return entry

    def _query(sb):
        sb.table(ENTRIES_TABLE).insert(entry.model_dump(mode="json")).execute()

    try:
        await _db_query(_query)
    except Exception as exc:
        if getattr(exc, "code", None) == _UNIQUE_VIOLATION:
            raise DuplicateEntry(entry.period_key) from exc
        raise
    return entry


async def update_entry(entry_id: str, data: dict, status_ne: Optional[EntryStatus] = None) -> Optional[KpiEntry]:
    """Patch one entry. With `status_ne`, only if it is not (or no longer) in that status.

    Returns None when no row matched.
    """
    flt = EntryFilter(ids=[entry_id], status_ne=status_ne)
    if not get_supabase():
        entries = _get_storage().ENTRIES
        entry = entries.get(entry_id)
        if not entry or not flt.matches(entry):
            return None
        entries[entry_id] = KpiEntry(**{**entry.model_dump(), **jsonable_encoder(data)})
        return entries[entry_id]

    def _query(sb):
        return _apply_entry_filter(sb.table(ENTRIES_TABLE).update(jsonable_encoder(data)), flt).execute().data

    rows = await _db_query(_query)
    return KpiEntry(**rows[0]) if rows else None


async def update_entries(flt: EntryFilter, data: dict) -> int:
    """Apply `data` to every entry matching `flt`; returns how many were changed."""
    if _is_empty_filter(flt):
        return 0
    if not get_supabase():
        entries = _get_storage().ENTRIES
        matched = [e for e in entries.values() if flt.matches(e)]
        patch = jsonable_encoder(data)
        for entry in matched:
            entries[entry.id] = KpiEntry(**{**entry.model_dump(), **patch})
        return len(matched)

    def _query(sb):
        return _apply_entry_filter(sb.table(ENTRIES_TABLE).update(jsonable_encoder(data)), flt).execute().data

    rows = await _db_query(_query)
    return len(rows)


# ── Audit log ─────────────────────────────────────────────────────────────────

async def create_audit_log(record: AuditRecord) -> AuditRecord:
    if not get_supabase():
        _get_storage().AUDIT_LOGS.append(record)
        return record

    def _query(sb):
        sb.table(AUDIT_TABLE).insert(jsonable_encoder(record)).execute()

    await _db_query(_query)
    return record
