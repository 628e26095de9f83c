from fastapi import APIRouter, Depends

from aiborn.api.deps import get_current_user, get_entitlement_service
from aiborn.core.security import CurrentUser
from aiborn.models.entitlement import (
    EntitlementCheckResponse,
    EntitlementItem,
    EntitlementListResponse,
    EntitlementType,
    ExcerptEntitlementResponse,
)
from aiborn.services.entitlement_service import EntitlementService

router = APIRouter(prefix="/api/entitlements", tags=["用户权益"])
excerpt_router = APIRouter(prefix="/api/excerpt", tags=["试读"])


@router.get("", response_model=EntitlementListResponse)
async def list_entitlements(
    user: CurrentUser = Depends(get_current_user),
    service: EntitlementService = Depends(get_entitlement_service)
):
    """当前用户的全部权益"""
    entitlements = await service.list_entitlements(user.user_id)
    return EntitlementListResponse(
        entitlements=[
            EntitlementItem(type=e.type, granted_by=e.granted_by, granted_at=e.granted_at)
            for e in entitlements
        ]
    )


@router.get("/{entitlement_type}", response_model=EntitlementCheckResponse)
async def check_entitlement(
    entitlement_type: EntitlementType,
    user: CurrentUser = Depends(get_current_user),
    service: EntitlementService = Depends(get_entitlement_service)
):
    """检查当前用户是否拥有某项权益"""
    has_entitlement = await service.has_entitlement(user.user_id, entitlement_type)
    return EntitlementCheckResponse(type=entitlement_type, has_entitlement=has_entitlement)


@excerpt_router.get(
    "/check-entitlement",
    response_model=ExcerptEntitlementResponse,
    response_model_exclude_none=True
)
async def check_excerpt_entitlement(
    user: CurrentUser = Depends(get_current_user),
    service: EntitlementService = Depends(get_entitlement_service)
):
    """试读章节下载权限"""
    return await service.check_excerpt_access(user.user_id)
