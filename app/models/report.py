from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from app.models.common import Pagination


class Ranking(BaseModel):
    member_id: str
    member_name: str = "Unknown"
    member_email: str = "Unknown"
    member_department: str = ""
    member_role: str = ""
    ranking: int = 0
    total_score: float = 0
    has_entry: bool = False
    entry_id: Optional[str] = None
    status: str = "no-entry"  # entry status, or no-entry


class RankingStatistics(BaseModel):
    total_members: int = 0
    members_with_entries: int = 0
    members_without_entries: int = 0
    average_score: float = 0
    highest_score: float = 0
    lowest_score: float = 0
    completion_rate: int = 0  # percent, 0-100


class DepartmentStatistics(RankingStatistics):
    total_roles: int = 0


class RoleReport(BaseModel):
    role: str
    rankings: list[Ranking] = []
    statistics: RankingStatistics


class DepartmentReport(BaseModel):
    department: str
    template_id: str
    template_name: str
    generated_at: datetime
    generated_by: str
    role_reports: list[RoleReport] = []
    department_statistics: DepartmentStatistics
    entries_selected: int = 0   # unreported entries picked for locking
    entries_updated: int = 0    # entries actually moved to generated by this run


class RoleStatisticsReport(BaseModel):
    rankings: list[Ranking] = []
    statistics: RankingStatistics
    pagination: Pagination


class GenerateReportRequest(BaseModel):
    department: str = ""
    template_id: str = ""
