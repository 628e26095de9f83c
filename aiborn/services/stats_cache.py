"""
VIP码统计缓存
统计结果按(码类型, 机构)缓存在Redis中；Redis未连接或读写失败时按未命中处理，不影响业务
"""

import json
import logging
from typing import Optional

import redis.asyncio as redis

from aiborn.core.config import settings
from aiborn.models.code import CodeStatistics

logger = logging.getLogger(__name__)


class StatsCache:
    """VIP码统计缓存"""

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        key_prefix: str = "vipcode:stats:",
        ttl: Optional[int] = None
    ):
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self.ttl = ttl or settings.code_stats_cache_ttl

    def attach(self, redis_client: Optional[redis.Redis]) -> None:
        """复用RedisManager的连接池"""
        self.redis_client = redis_client
        if redis_client is not None:
            logger.info(f"统计缓存已连接Redis，TTL={self.ttl}s")

    def detach(self) -> None:
        """断开与连接池的关联，连接池由RedisManager关闭"""
        self.redis_client = None

    @property
    def is_available(self) -> bool:
        return self.redis_client is not None

    def key_for(self, code_type: Optional[str] = None, org_id: Optional[str] = None) -> str:
        return f"{self.key_prefix}{code_type or 'all'}:{org_id or 'all'}"

    async def get(
        self,
        code_type: Optional[str] = None,
        org_id: Optional[str] = None
    ) -> Optional[CodeStatistics]:
        """读取缓存的统计"""
        if not self.is_available:
            return None

        key = self.key_for(code_type, org_id)
        try:
            raw = await self.redis_client.get(key)
        except Exception as e:
            logger.error(f"读取统计缓存失败 {key}: {e}")
            return None

        if not raw:
            return None
        return CodeStatistics.model_validate(json.loads(raw))

    async def set(
        self,
        stats: CodeStatistics,
        code_type: Optional[str] = None,
        org_id: Optional[str] = None
    ) -> bool:
        """写入统计缓存"""
        if not self.is_available:
            return False

        key = self.key_for(code_type, org_id)
        try:
            await self.redis_client.setex(key, self.ttl, stats.model_dump_json())
            return True
        except Exception as e:
            logger.error(f"写入统计缓存失败 {key}: {e}")
            return False

    async def invalidate(self) -> int:
        """清除全部统计缓存，返回删除的key数量"""
        if not self.is_available:
            return 0

        try:
            keys = [key async for key in self.redis_client.scan_iter(match=f"{self.key_prefix}*")]
            if not keys:
                return 0
            return await self.redis_client.delete(*keys)
        except Exception as e:
            logger.error(f"清除统计缓存失败: {e}")
            return 0


stats_cache = StatsCache()
