from datetime import datetime, timezone
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, Request, Response, status

from aiborn.api.deps import audit_admin_action, get_code_service, require_admin
from aiborn.core.security import CurrentUser
from aiborn.models.code import (
    CodeActionResponse,
    CodeListItem,
    CodeListQuery,
    CodeListResponse,
    CodeStatus,
    CodeType,
    GenerateCodesRequest,
    GenerateCodesResponse,
)
from aiborn.services.code_generator import export_codes_to_csv
from aiborn.services.code_service import CodeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/codes", tags=["VIP码管理"])


@router.post("/generate", status_code=status.HTTP_201_CREATED, response_model=GenerateCodesResponse)
async def generate_codes(
    payload: GenerateCodesRequest,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    service: CodeService = Depends(get_code_service)
):
    """批量生成VIP码，format=csv时返回CSV附件"""
    codes = await service.generate_codes(payload, created_by=admin.email or admin.user_id)

    audit_admin_action(
        request,
        admin,
        action="GENERATE_CODES",
        resource="codes",
        details={
            "count": len(codes),
            "type": payload.type.value,
            "max_redemptions": payload.max_redemptions,
            "org_id": payload.org_id,
            "format": payload.format,
        }
    )

    if payload.format == "csv":
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        filename = f"vip-codes-{payload.type.value.lower()}-{timestamp}.csv"
        return Response(
            content=export_codes_to_csv(codes),
            media_type="text/csv",
            status_code=status.HTTP_201_CREATED,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    return GenerateCodesResponse(count=len(codes), codes=codes)


@router.get("/list", response_model=CodeListResponse)
async def list_codes(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=1000),
    type: Optional[CodeType] = Query(None),
    status: Optional[CodeStatus] = Query(None),
    org_id: Optional[str] = Query(None, alias="orgId"),
    search: Optional[str] = Query(None, max_length=64),
    include_stats: bool = Query(False, alias="includeStats"),
    admin: CurrentUser = Depends(require_admin),
    service: CodeService = Depends(get_code_service)
):
    """分页查询VIP码"""
    query = CodeListQuery(
        page=page,
        limit=limit,
        type=type,
        status=status,
        org_id=org_id,
        search=search,
        include_stats=include_stats
    )
    data = await service.list_codes(query)
    return CodeListResponse(data=data)


@router.post("/{code_id}/revoke", response_model=CodeActionResponse)
async def revoke_code(
    code_id: str,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    service: CodeService = Depends(get_code_service)
):
    """作废VIP码"""
    code = await service.revoke_code(code_id)
    audit_admin_action(request, admin, action="REVOKE_CODE", resource=f"codes/{code_id}",
                       details={"code": code.code})
    return CodeActionResponse(code=CodeListItem.from_code(code), affected=1, message="Code revoked")


@router.post("/expire", response_model=CodeActionResponse)
async def expire_codes(
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    service: CodeService = Depends(get_code_service)
):
    """执行过期扫描"""
    affected = await service.expire_codes()
    audit_admin_action(request, admin, action="EXPIRE_CODES", resource="codes",
                       details={"affected": affected})
    return CodeActionResponse(affected=affected, message=f"{affected} codes expired")
