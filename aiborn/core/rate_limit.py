"""
基于Redis的固定窗口限流器
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from aiborn.core.config import settings
from aiborn.core.redis import RedisManager, redis_manager

logger = structlog.get_logger()


@dataclass
class RateLimitResult:
    """限流检查结果"""
    allowed: bool
    limit: int
    remaining: int
    reset: int  # 窗口剩余秒数

    def headers(self) -> dict:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


class RateLimiter:
    """固定窗口限流器，每个标识符在窗口内最多允许limit次请求"""

    def __init__(
        self,
        prefix: str,
        limit: int,
        window_seconds: int,
        manager: Optional[RedisManager] = None
    ):
        self.prefix = prefix
        self.limit = limit
        self.window_seconds = window_seconds
        self.manager = manager or redis_manager

    def _get_key(self, identifier: str) -> str:
        return f"ratelimit:{self.prefix}:{identifier}"

    async def check(self, identifier: str) -> RateLimitResult:
        """计数并判断是否超限"""
        if not self.manager.is_available:
            # 未配置Redis时不限流
            logger.warning("限流器未连接Redis，跳过限流", limiter=self.prefix)
            return RateLimitResult(True, self.limit, self.limit, self.window_seconds)

        try:
            count, ttl = await self.manager.incr_window(
                self._get_key(identifier), self.window_seconds
            )
        except Exception as e:
            logger.error("限流计数失败", limiter=self.prefix, error=str(e))
            return RateLimitResult(True, self.limit, self.limit, self.window_seconds)

        allowed = count <= self.limit
        if not allowed:
            logger.warning(
                "请求超出限流", limiter=self.prefix, identifier=identifier, count=count
            )
        return RateLimitResult(
            allowed=allowed,
            limit=self.limit,
            remaining=max(self.limit - count, 0),
            reset=ttl,
        )


# 各接口的限流器实例
code_validate_limiter = RateLimiter(
    "code-validate", settings.code_validate_rate_limit, settings.code_validate_rate_window
)
code_redeem_limiter = RateLimiter(
    "code-redeem", settings.code_redeem_rate_limit, settings.code_redeem_rate_window
)
admin_limiter = RateLimiter(
    "admin", settings.admin_rate_limit, settings.admin_rate_window
)
org_member_limiter = RateLimiter(
    "org-member", settings.org_member_rate_limit, settings.org_member_rate_window
)
