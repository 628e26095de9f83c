"""
接口依赖：数据库会话与服务装配、身份认证、管理员校验、限流与审计日志
"""

import logging
from typing import Optional, Callable, Awaitable

import structlog
from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from aiborn.api.exceptions import AuthenticationError, AuthorizationError, RateLimitExceeded
from aiborn.core.database import get_db_session
from aiborn.core.rate_limit import (
    RateLimiter,
    admin_limiter,
    code_redeem_limiter,
    code_validate_limiter,
    org_member_limiter,
)
from aiborn.core.security import CurrentUser, decode_access_token
from aiborn.repositories.code_repository import CodeRepository
from aiborn.repositories.entitlement_repository import EntitlementRepository
from aiborn.repositories.organization_repository import OrganizationRepository, UserRepository
from aiborn.services.code_service import CodeService
from aiborn.services.entitlement_service import EntitlementService
from aiborn.services.organization_service import OrganizationService

logger = logging.getLogger(__name__)
audit_logger = structlog.get_logger("aiborn.audit")

bearer_scheme = HTTPBearer(auto_error=False)


def get_client_ip(request: Request) -> str:
    """获取客户端IP：优先x-forwarded-for的第一个地址，其次x-real-ip"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


# ---------- 服务装配 ----------


async def get_code_service(session: AsyncSession = Depends(get_db_session)) -> CodeService:
    return CodeService(
        CodeRepository(session),
        EntitlementRepository(session),
        OrganizationRepository(session)
    )


async def get_entitlement_service(
    session: AsyncSession = Depends(get_db_session)
) -> EntitlementService:
    return EntitlementService(EntitlementRepository(session))


async def get_organization_service(
    session: AsyncSession = Depends(get_db_session)
) -> OrganizationService:
    return OrganizationService(
        OrganizationRepository(session),
        UserRepository(session),
        CodeRepository(session)
    )


# ---------- 身份认证 ----------


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[CurrentUser]:
    """解析Bearer令牌，未携带或无效时返回None"""
    if not credentials:
        return None

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        return None

    email = payload.get("email")
    return CurrentUser(user_id=str(payload["sub"]), email=email.lower() if email else None)


async def get_current_user(
    user: Optional[CurrentUser] = Depends(get_optional_user)
) -> CurrentUser:
    """要求已登录"""
    if user is None:
        raise AuthenticationError()
    return user


# ---------- 限流 ----------


async def enforce_rate_limit(limiter: RateLimiter, identifier: str, response: Response) -> None:
    """执行限流检查，超限抛出RateLimitExceeded"""
    result = await limiter.check(identifier)
    if not result.allowed:
        raise RateLimitExceeded(retry_after=result.reset, headers=result.headers())
    response.headers.update(result.headers())


def ip_rate_limit(limiter: RateLimiter) -> Callable[..., Awaitable[None]]:
    """按客户端IP限流的依赖"""

    async def dependency(request: Request, response: Response) -> None:
        await enforce_rate_limit(limiter, get_client_ip(request), response)

    return dependency


validate_rate_limit = ip_rate_limit(code_validate_limiter)
redeem_rate_limit = ip_rate_limit(code_redeem_limiter)


async def org_member_rate_limit(
    request: Request,
    response: Response,
    org_id: str,
) -> None:
    """成员管理按机构+IP限流"""
    await enforce_rate_limit(org_member_limiter, f"{org_id}:{get_client_ip(request)}", response)


async def require_admin(
    response: Response,
    user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    """要求管理员身份，并按管理员邮箱限流"""
    if not user.is_admin:
        logger.warning(f"非管理员访问管理接口: user={user.user_id}")
        raise AuthorizationError("Admin access required", "ADMIN_REQUIRED")

    await enforce_rate_limit(admin_limiter, user.email, response)
    return user


# ---------- 审计 ----------


def audit_admin_action(
    request: Request,
    admin: CurrentUser,
    action: str,
    resource: str,
    details: Optional[dict] = None
) -> None:
    """记录管理员操作审计日志"""
    audit_logger.info(
        "admin_audit",
        admin_id=admin.user_id,
        admin_email=admin.email,
        action=action,
        resource=resource,
        details=details or {},
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
