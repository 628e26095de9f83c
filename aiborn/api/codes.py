from fastapi import APIRouter, Depends, Request
import logging

from aiborn.api.deps import (
    get_client_ip,
    get_code_service,
    get_current_user,
    redeem_rate_limit,
    validate_rate_limit,
)
from aiborn.core.security import CurrentUser
from aiborn.models.code import (
    RedeemCodeResponse,
    ValidateCodeRequest,
    ValidateCodeResponse,
)
from aiborn.services.code_service import CodeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/codes", tags=["VIP码"])


@router.post(
    "/validate",
    response_model=ValidateCodeResponse,
    response_model_exclude_unset=True,
    dependencies=[Depends(validate_rate_limit)]
)
async def validate_code(
    payload: ValidateCodeRequest,
    service: CodeService = Depends(get_code_service)
):
    """校验VIP码，不消耗兑换次数"""
    validation = await service.validate_code(payload.code)
    return ValidateCodeResponse.from_validation(validation)


@router.post(
    "/redeem",
    response_model=RedeemCodeResponse,
    response_model_exclude_unset=True,
    dependencies=[Depends(redeem_rate_limit)]
)
async def redeem_code(
    payload: ValidateCodeRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    service: CodeService = Depends(get_code_service)
):
    """兑换VIP码并授予权益"""
    redemption = await service.redeem_code(
        payload.code,
        user_id=user.user_id,
        ip_address=get_client_ip(request)
    )
    return RedeemCodeResponse.from_redemption(redemption)
