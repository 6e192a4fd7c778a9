"""KPI entry lifecycle: create, update, system entries, listings and department reports.

Pure checks live in scoring / ranking / periods; this module sequences store
calls around them and writes the audit trail.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from app.config import DEFAULT_PAGE_SIZE, REPORT_ROSTER_PAGE_SIZE
from app.models.common import Page, Pagination
from app.models.kpi_entry import (
    EntryFilter,
    EntryStatus,
    EntryValueIn,
    KpiEntry,
    KpiEntryCreate,
    KpiEntryUpdate,
    SystemEntryCreate,
    SystemValue,
)
from app.models.member import Member
from app.models.report import DepartmentReport, DepartmentStatistics, RoleReport, RoleStatisticsReport
from app.services import audit, db, frequency_guard, member_service, ranking, scoring
from app.services.errors import BadRequest, EntryLocked, EntryNotFound, KpiError, MemberNotFound, TemplateNotFound
from app.services.periods import period_key

logger = logging.getLogger(__name__)

SYSTEM_USER = "system"


def _dump_values(values) -> list[dict]:
    return [v.model_dump(mode="json") for v in values]


# ── Create / update ───────────────────────────────────────────────────────────

async def create_kpi_entry(payload: KpiEntryCreate, user_id: str, now: Optional[datetime] = None) -> KpiEntry:
    """Validate, score and store a new entry for `payload.created_for`."""
    now = now or datetime.now(timezone.utc)
    template = await db.get_template(payload.kpi_template_id)
    if not template:
        raise TemplateNotFound(payload.kpi_template_id)
    member = await db.get_member(payload.created_for)
    if not member:
        raise MemberNotFound(payload.created_for)

    if template.role != member.role:
        raise BadRequest(f"Template is not for {member.role}", title="Template is not for this role")

    await frequency_guard.ensure_can_create(template, member.user_id, now)

    values = scoring.validate_and_calculate_scores(payload.values, template.items)
    total = scoring.total_score(values)
    logger.info(
        "Scored entry for %s on %s: total=%s (%s)",
        member.user_id, template.id, total,
        ", ".join(f"{v.name}={v.score}" for v in values),
    )

    entry = await db.create_entry(KpiEntry(
        id=uuid.uuid4().hex,
        kpi_template_id=template.id,
        created_for=member.user_id,
        created_by=user_id,
        values=values,
        total_score=total,
        status=EntryStatus.initiated,
        period_key=period_key(template.frequency, now),
        created_at=now,
        updated_at=now,
    ))

    await audit.record("entry", "create", user_id, [
        audit.change("values", _dump_values(payload.values), _dump_values(entry.values)),
        audit.change("total_score", None, total),
    ])
    return entry


async def update_kpi_entry(
    entry_id: str,
    patch: KpiEntryUpdate,
    user_id: str,
    now: Optional[datetime] = None,
) -> KpiEntry:
    """Re-score an entry's values while its period is still open and it is not locked."""
    now = now or datetime.now(timezone.utc)
    existing = await db.get_entry(entry_id)
    if not existing:
        raise EntryNotFound(entry_id)

    frequency_guard.ensure_not_locked(existing)
    template = await db.get_template(existing.kpi_template_id)
    if not template:
        raise TemplateNotFound(existing.kpi_template_id)

    frequency_guard.ensure_can_update(existing, template, now)

    values = existing.values
    if patch.values is not None:
        values = scoring.validate_and_calculate_scores(patch.values, template.items)
    total = scoring.total_score(values)

    # a report may have locked the entry since it was read
    updated = await db.update_entry(
        entry_id,
        {"values": values, "total_score": total, "updated_at": now},
        status_ne=EntryStatus.generated,
    )
    if not updated:
        logger.info("Entry %s was locked before the update could be written", entry_id)
        raise EntryLocked()

    await audit.record("entry", "update", user_id, [
        audit.change("values", _dump_values(existing.values), _dump_values(values)),
        audit.change("total_score", existing.total_score, total),
    ])
    return updated


# ── System-generated entries ──────────────────────────────────────────────────

def _system_values(system_values: list[SystemValue]) -> list[EntryValueIn]:
    return [
        EntryValueIn(
            name=sv.name,
            value=sv.value,
            score=sv.score,
            comments=f"System generated from {sv.source}",
            is_by_passed=True,
        )
        for sv in system_values
    ]


async def create_system_generated_entry(
    template_id: str,
    user_id: str,
    system_values: list[SystemValue],
    now: Optional[datetime] = None,
) -> KpiEntry:
    """Store values pushed by an automated source. Each value is bypassed and must carry a score.

    Same-period duplicates are left to the store's period-bucket uniqueness.
    """
    now = now or datetime.now(timezone.utc)
    template = await db.get_template(template_id)
    if not template:
        raise TemplateNotFound(template_id)
    if not await db.get_member(user_id):
        raise MemberNotFound(user_id)

    await frequency_guard.ensure_not_reported(template, user_id, now)

    values = scoring.validate_and_calculate_scores(_system_values(system_values), template.items)
    total = scoring.total_score(values)

    entry = await db.create_entry(KpiEntry(
        id=uuid.uuid4().hex,
        kpi_template_id=template_id,
        created_for=user_id,
        created_by=SYSTEM_USER,
        values=values,
        total_score=total,
        period_key=period_key(template.frequency, now),
        created_at=now,
        updated_at=now,
    ))
    logger.info("System-generated KPI entry created for user %s, template %s", user_id, template_id)
    return entry


async def bulk_create_system_entries(items: list[SystemEntryCreate], now: Optional[datetime] = None) -> list[KpiEntry]:
    created = []
    for item in items:
        created.append(await create_system_generated_entry(item.kpi_template_id, item.user_id, item.system_values, now))
    logger.info("Bulk created %d system-generated KPI entries", len(created))
    return created


# ── Listings ──────────────────────────────────────────────────────────────────

async def get_kpi_entries(
    flt: Optional[EntryFilter] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Page[KpiEntry]:
    flt = flt or EntryFilter()
    skip = max(page - 1, 0) * limit
    docs = await db.find_entries(flt, skip=skip, limit=limit)
    total = await db.count_entries(flt)
    return Page[KpiEntry].build(docs, total, page, limit)


async def get_kpi_entries_by_user(
    user_id: str,
    flt: Optional[EntryFilter] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Page[KpiEntry]:
    """Entries submitted by `user_id`."""
    flt = (flt or EntryFilter()).model_copy(update={"created_by": user_id})
    return await get_kpi_entries(flt, page, limit)


def _latest_by_member(entries: list[KpiEntry]) -> dict[str, KpiEntry]:
    # entries arrive oldest first, so the newest per member wins
    by_member: dict[str, KpiEntry] = {}
    for entry in entries:
        by_member[entry.created_for] = entry
    return by_member


async def get_statistics_by_department_and_role(
    template_id: str,
    department: str,
    role: str,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> RoleStatisticsReport:
    """Live ranking of one page of a role's members, counting entries in any status."""
    if not (template_id and department and role):
        raise BadRequest("Template ID, department and role are required")

    members, total = await db.find_members(member_service.build_member_query(department=department, role=role), page, limit)
    entries = await db.find_entries(EntryFilter(
        kpi_template_id=template_id,
        created_for=[m.user_id for m in members],
    ))
    rankings, statistics = ranking.rank_members(members, _latest_by_member(entries))
    return RoleStatisticsReport(
        rankings=rankings,
        statistics=statistics,
        pagination=Pagination.build(total, page, limit),
    )


# ── Department report ─────────────────────────────────────────────────────────

def _group_by_role(members: list[Member]) -> dict[str, list[Member]]:
    groups: dict[str, list[Member]] = {}
    for member in members:
        groups.setdefault(member.role, []).append(member)
    return groups


async def generate_report_by_department(
    department: str,
    template_id: str,
    generated_by: str,
    now: Optional[datetime] = None,
) -> DepartmentReport:
    """Rank every role in `department` on `template_id` and lock what was read.

    Only entries not yet generated are considered. Each member is ranked on
    their newest one, and all of them are moved to `generated` by this run,
    so running it twice gives a second report in which the previously
    reported members have no entry.
    """
    if not (department and template_id):
        raise BadRequest("Department and templateId are required", title="Missing required fields")

    now = now or datetime.now(timezone.utc)
    logger.info("Generating department report for %s, template %s", department, template_id)
    try:
        template = await db.get_template(template_id)
        if not template:
            raise TemplateNotFound(template_id)

        roster = await member_service.get_all_members(department, REPORT_ROSTER_PAGE_SIZE)
        entries = await db.find_entries(EntryFilter(
            kpi_template_id=template_id,
            created_for=[m.user_id for m in roster],
            status_ne=EntryStatus.generated,
        ))
        entries_by_member = _latest_by_member(entries)

        role_reports: list[RoleReport] = []
        for role, members in _group_by_role(roster).items():
            rankings, statistics = ranking.rank_members(members, entries_by_member)
            role_reports.append(RoleReport(role=role, rankings=rankings, statistics=statistics))

        # older unreported entries are consumed too, only the newest is ranked
        to_lock = [e.id for e in entries]

        locked = 0
        if to_lock:
            # conditional on status so an entry is locked by at most one run
            locked = await db.update_entries(
                EntryFilter(ids=to_lock, status_ne=EntryStatus.generated),
                {"status": EntryStatus.generated, "updated_at": now},
            )
            logger.info("Updated %d KPI entries to 'generated' status", locked)
            if locked != len(to_lock):
                logger.warning(
                    "Locked %d of %d selected entries for %s/%s; the rest were locked elsewhere",
                    locked, len(to_lock), department, template_id,
                )

        department_statistics = DepartmentStatistics(
            **ranking.compute_statistics([r for report in role_reports for r in report.rankings]).model_dump(),
            total_roles=len(role_reports),
        )
        report = DepartmentReport(
            department=department,
            template_id=template_id,
            template_name=template.name,
            generated_at=now,
            generated_by=generated_by,
            role_reports=role_reports,
            department_statistics=department_statistics,
            entries_selected=len(to_lock),
            entries_updated=locked,
        )
    except KpiError:
        raise
    except Exception:
        logger.exception("Error generating department report for %s", department)
        raise

    await audit.record("entry", "generate_report", generated_by, [
        audit.change("department_report", None, {
            "department": department,
            "template_id": template_id,
            "entries_updated": locked,
            "roles": [r.role for r in role_reports],
        }),
    ])
    logger.info("Department report generated successfully for %s", department)
    return report
