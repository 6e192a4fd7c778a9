"""KPI entry endpoints: submit, edit, list, live statistics and department reports."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.config import DEFAULT_PAGE_SIZE
from app.models.common import ApiResponse, Page
from app.models.kpi_entry import EntryFilter, EntryStatus, KpiEntry, KpiEntryCreate, KpiEntryUpdate
from app.models.report import DepartmentReport, GenerateReportRequest, RoleStatisticsReport
from app.routers.deps import current_user_id
from app.services import kpi_entry_service

router = APIRouter()


def _entry_filter(
    kpi_template_id: Optional[str] = Query(default=None),
    created_for: Optional[str] = Query(default=None),
    status: Optional[EntryStatus] = Query(default=None),
) -> EntryFilter:
    return EntryFilter(
        kpi_template_id=kpi_template_id,
        created_for=[created_for] if created_for else None,
        status=status,
    )


@router.post("", response_model=ApiResponse[KpiEntry], status_code=201)
async def create_entry(body: KpiEntryCreate, user_id: str = Depends(current_user_id)):
    """Submit an entry; values are scored against the template on the way in."""
    entry = await kpi_entry_service.create_kpi_entry(body, user_id)
    return ApiResponse[KpiEntry](message="KPI entry created successfully", data=entry)


@router.put("/{entry_id}", response_model=ApiResponse[KpiEntry])
async def update_entry(entry_id: str, body: KpiEntryUpdate, user_id: str = Depends(current_user_id)):
    entry = await kpi_entry_service.update_kpi_entry(entry_id, body, user_id)
    return ApiResponse[KpiEntry](message="KPI entry updated successfully", data=entry)


@router.post("/generate-report", response_model=ApiResponse[DepartmentReport])
async def generate_report(body: GenerateReportRequest, user_id: str = Depends(current_user_id)):
    """Rank a department on a template and lock every ranked entry."""
    report = await kpi_entry_service.generate_report_by_department(body.department, body.template_id, user_id)
    return ApiResponse[DepartmentReport](message="Department report generated successfully", data=report)


@router.get("", response_model=ApiResponse[Page[KpiEntry]])
async def list_entries(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=1000),
    flt: EntryFilter = Depends(_entry_filter),
):
    entries = await kpi_entry_service.get_kpi_entries(flt, page, limit)
    return ApiResponse[Page[KpiEntry]](message="KPI entries fetched successfully", data=entries)


@router.get("/user", response_model=ApiResponse[Page[KpiEntry]])
async def list_my_entries(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=1000),
    flt: EntryFilter = Depends(_entry_filter),
    user_id: str = Depends(current_user_id),
):
    """Entries submitted by the caller."""
    entries = await kpi_entry_service.get_kpi_entries_by_user(user_id, flt, page, limit)
    return ApiResponse[Page[KpiEntry]](message="KPI entries fetched successfully", data=entries)


@router.get("/statistics", response_model=ApiResponse[RoleStatisticsReport])
async def role_statistics(
    template_id: str = Query(default=""),
    department: str = Query(default=""),
    role: str = Query(default=""),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=1000),
):
    """Live ranking for one role, without locking anything."""
    stats = await kpi_entry_service.get_statistics_by_department_and_role(template_id, department, role, page, limit)
    return ApiResponse[RoleStatisticsReport](message="KPI entries statistics fetched successfully", data=stats)
