"""Member directory lookups with the name/email/department/role search."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from app.config import DEFAULT_PAGE_SIZE
from app.models.common import Page
from app.models.kpi_entry import EntryFilter
from app.models.kpi_template import Frequency
from app.models.member import ExactFilter, Member, MemberQuery, MemberWithStatus, TextFilter
from app.services import db
from app.services.periods import period_window

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> str:
    return value.strip() if value else ""


def build_member_query(
    name: Optional[str] = None,
    email: Optional[str] = None,
    department: Optional[str] = None,
    role: Optional[str] = None,
) -> MemberQuery:
    """Name/email become OR-ed substring filters; department/role are AND-ed exact filters."""
    text_filters = [
        TextFilter(field=field, pattern=_clean(value))
        for field, value in (("name", name), ("email", email))
        if _clean(value)
    ]
    exact_filters = [
        ExactFilter(field=field, value=_clean(value))
        for field, value in (("department_slug", department), ("role", role))
        if _clean(value)
    ]
    return MemberQuery(text_filters=text_filters, exact_filters=exact_filters)


async def get_member(user_id: str) -> Optional[Member]:
    return await db.get_member(user_id)


async def get_members(
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    name: Optional[str] = None,
    email: Optional[str] = None,
    department: Optional[str] = None,
    role: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Page[MemberWithStatus]:
    """One page of matching members, each flagged with whether it has an entry this month."""
    query = build_member_query(name, email, department, role)
    logger.debug("Member query: %s", query.model_dump())
    members, total = await db.find_members(query, page, limit)

    start, end = period_window(Frequency.monthly, now)
    entries = await db.find_entries(EntryFilter(
        created_for=[m.user_id for m in members],
        created_from=start,
        created_to=end,
    ))
    filled = {e.created_for for e in entries}

    docs = [
        MemberWithStatus(**m.model_dump(), is_kpi_entry_filled_for_current_month=m.user_id in filled)
        for m in members
    ]
    return Page[MemberWithStatus].build(docs, total, page, limit)


async def get_all_members(department: str, page_size: int) -> list[Member]:
    """Every member of a department, read page by page."""
    query = build_member_query(department=department)
    roster: list[Member] = []
    page = 1
    while True:
        members, total = await db.find_members(query, page, page_size)
        roster.extend(members)
        if not members or len(roster) >= total:
            return roster
        page += 1
