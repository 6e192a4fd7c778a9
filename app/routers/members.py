"""Member directory endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.config import DEFAULT_PAGE_SIZE
from app.models.common import ApiResponse, Page
from app.models.member import Member, MemberWithStatus
from app.routers.deps import current_user_id
from app.services import member_service

router = APIRouter()


@router.get("", response_model=ApiResponse[Page[MemberWithStatus]])
async def list_members(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=1000),
    name: Optional[str] = None,
    email: Optional[str] = None,
    department: Optional[str] = None,
    role: Optional[str] = None,
):
    """Search members. Name/email match any, department/role must all match."""
    members = await member_service.get_members(page, limit, name, email, department, role)
    return ApiResponse[Page[MemberWithStatus]](message="Members fetched successfully", data=members)


@router.get("/me", response_model=ApiResponse[Member])
async def my_member(user_id: str = Depends(current_user_id)):
    member = await member_service.get_member(user_id)
    if not member:
        raise HTTPException(404, "Member not found")
    return ApiResponse[Member](message="Member fetched successfully", data=member)
