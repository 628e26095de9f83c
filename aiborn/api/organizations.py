from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from aiborn.api.deps import (
    get_code_service,
    get_current_user,
    get_organization_service,
    org_member_rate_limit,
)
from aiborn.core.security import CurrentUser
from aiborn.models.code import CodeListQuery, CodeListResponse, CodeStatus, CodeType
from aiborn.models.organization import (
    AddMemberRequest,
    MemberListResponse,
    MemberResponse,
    OrganizationCreate,
    OrganizationDetailResponse,
    OrganizationResponse,
    UpdateMemberRequest,
)
from aiborn.services.code_service import CodeService
from aiborn.services.organization_service import OrganizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orgs", tags=["机构"])


async def get_actor_id(
    user: CurrentUser = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service)
) -> str:
    """当前用户在本地的用户ID，受邀用户以邀请时的记录为准"""
    return await service.resolve_user_id(user)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=OrganizationResponse)
async def create_organization(
    payload: OrganizationCreate,
    user: CurrentUser = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service)
):
    """创建机构，创建人成为OWNER"""
    org = await service.create_organization(user, payload)
    return OrganizationResponse(organization=org)


@router.get("/{org_id}", response_model=OrganizationDetailResponse)
async def get_organization(
    org_id: str,
    actor_id: str = Depends(get_actor_id),
    service: OrganizationService = Depends(get_organization_service)
):
    """机构详情与统计，仅成员可见"""
    org, role, stats = await service.get_organization(org_id, actor_id)
    return OrganizationDetailResponse(organization=org, role=role, stats=stats)


@router.get("/{org_id}/members", response_model=MemberListResponse)
async def list_members(
    org_id: str,
    actor_id: str = Depends(get_actor_id),
    service: OrganizationService = Depends(get_organization_service)
):
    """成员列表，按角色和加入时间排序"""
    members = await service.list_members(org_id, actor_id)
    return MemberListResponse(members=members)


@router.post(
    "/{org_id}/members",
    response_model=MemberResponse,
    dependencies=[Depends(org_member_rate_limit)]
)
async def add_member(
    org_id: str,
    payload: AddMemberRequest,
    actor_id: str = Depends(get_actor_id),
    service: OrganizationService = Depends(get_organization_service)
):
    """按邮箱添加成员，已移除的成员重新激活"""
    member, reactivated = await service.add_member(org_id, actor_id, payload)
    if reactivated:
        return MemberResponse(member=member, message="Member reactivated successfully")

    body = MemberResponse(member=member, message="Member added successfully")
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=body.model_dump(mode="json", by_alias=True)
    )


@router.patch("/{org_id}/members/{user_id}", response_model=MemberResponse)
async def update_member(
    org_id: str,
    user_id: str,
    payload: UpdateMemberRequest,
    actor_id: str = Depends(get_actor_id),
    service: OrganizationService = Depends(get_organization_service)
):
    """更新成员角色或状态"""
    member = await service.update_member(org_id, actor_id, user_id, payload)
    return MemberResponse(member=member, message="Member updated successfully")


@router.delete("/{org_id}/members/{user_id}", response_model=MemberResponse)
async def remove_member(
    org_id: str,
    user_id: str,
    actor_id: str = Depends(get_actor_id),
    service: OrganizationService = Depends(get_organization_service)
):
    """移除成员"""
    member = await service.remove_member(org_id, actor_id, user_id)
    return MemberResponse(member=member, message="Member removed successfully")


@router.get("/{org_id}/codes", response_model=CodeListResponse)
async def list_organization_codes(
    org_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=1000),
    type: Optional[CodeType] = Query(None),
    status: Optional[CodeStatus] = Query(None),
    search: Optional[str] = Query(None, max_length=64),
    actor_id: str = Depends(get_actor_id),
    org_service: OrganizationService = Depends(get_organization_service),
    code_service: CodeService = Depends(get_code_service)
):
    """机构名下的VIP码与统计，仅OWNER/ADMIN可见"""
    await org_service.require_member(org_id, actor_id, manage=True)
    query = CodeListQuery(
        page=page,
        limit=limit,
        type=type,
        status=status,
        search=search,
        org_id=org_id,
        include_stats=True
    )
    data = await code_service.list_codes(query)
    return CodeListResponse(data=data)
