"""Competition ranking and summary statistics over a member roster."""
from __future__ import annotations

import math
from typing import Mapping

from app.models.kpi_entry import KpiEntry
from app.models.member import Member
from app.models.report import Ranking, RankingStatistics


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 away from zero for positives, like JavaScript's Math.round."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def build_rankings(members: list[Member], entries_by_member: Mapping[str, KpiEntry]) -> list[Ranking]:
    """One unranked row per member; members without an entry score 0."""
    rows = []
    for member in members:
        entry = entries_by_member.get(member.user_id)
        rows.append(Ranking(
            member_id=member.user_id,
            member_name=member.name or "Unknown",
            member_email=member.email or "Unknown",
            member_department=member.department_slug,
            member_role=member.role,
            total_score=entry.total_score if entry else 0,
            has_entry=entry is not None,
            entry_id=entry.id if entry else None,
            status=entry.status.value if entry else "no-entry",
        ))
    return rows


def assign_ranks(rankings: list[Ranking]) -> list[Ranking]:
    """Sort by score descending and assign competition ranks (1, 1, 3, ...).

    The sort is stable, so tied members keep roster order.
    """
    ordered = sorted(rankings, key=lambda r: r.total_score, reverse=True)
    current_rank = 1
    current_score = ordered[0].total_score if ordered else None
    for index, row in enumerate(ordered):
        if row.total_score != current_score:
            current_rank = index + 1
            current_score = row.total_score
        row.ranking = current_rank
    return ordered


def compute_statistics(rankings: list[Ranking]) -> RankingStatistics:
    ordered = sorted(rankings, key=lambda r: r.total_score, reverse=True)
    with_entries = [r for r in ordered if r.has_entry]
    total = len(ordered)

    average = sum(r.total_score for r in with_entries) / len(with_entries) if with_entries else 0
    return RankingStatistics(
        total_members=total,
        members_with_entries=len(with_entries),
        members_without_entries=total - len(with_entries),
        average_score=round_half_up(average, 2),
        highest_score=ordered[0].total_score if ordered else 0,
        lowest_score=with_entries[-1].total_score if with_entries else 0,
        # empty roster reports 0% rather than dividing by zero
        completion_rate=int(round_half_up(100 * len(with_entries) / total)) if total else 0,
    )


def rank_members(
    members: list[Member],
    entries_by_member: Mapping[str, KpiEntry],
) -> tuple[list[Ranking], RankingStatistics]:
    rankings = assign_ranks(build_rankings(members, entries_by_member))
    return rankings, compute_statistics(rankings)
