import redis.asyncio as aioredis
from typing import Optional
from aiborn.core.config import settings
import structlog

"redis连接管理器，供限流计数和统计缓存共用"

logger = structlog.get_logger()


class RedisManager:
    """Redis连接管理器"""

    def __init__(self):
        self.redis_pool: Optional[aioredis.Redis] = None

    async def init_redis(self) -> None:
        """初始化Redis连接池"""
        try:
            self.redis_pool = aioredis.from_url(
                settings.redis_url_computed,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                retry_on_timeout=True
            )
            # 测试连接
            await self.redis_pool.ping()
            logger.info("Redis连接初始化成功")
        except Exception as e:
            logger.error("Redis连接初始化失败", error=str(e))
            self.redis_pool = None
            raise

    async def close_redis(self) -> None:
        """关闭Redis连接"""
        if self.redis_pool:
            await self.redis_pool.aclose()
            self.redis_pool = None
            logger.info("Redis连接已关闭")

    @property
    def is_available(self) -> bool:
        return self.redis_pool is not None

    async def incr_window(self, key: str, window_seconds: int) -> tuple[int, int]:
        """
        固定窗口计数：自增并在首次计数时设置过期时间

        Returns:
            (当前窗口内的计数, 窗口剩余秒数)
        """
        async with self.redis_pool.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            pipe.ttl(key)
            count, _, ttl = await pipe.execute()
        return int(count), int(ttl) if ttl and ttl > 0 else window_seconds


# 全局Redis管理器实例
redis_manager = RedisManager()