"""
健康检查接口
数据库是必需组件；Redis缺失时限流与统计缓存降级，服务仍视为可用
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from aiborn.core import database
from aiborn.core.config import settings
from aiborn.core.redis import redis_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


async def _check_redis() -> dict:
    if redis_manager.redis_pool is None:
        return {"status": "disabled", "message": "未配置Redis，限流与统计缓存已降级"}
    try:
        await redis_manager.redis_pool.ping()
    except Exception as e:
        logger.warning(f"Redis健康检查失败: {e}")
        return {"status": "error", "message": "Redis连接失败"}
    return {"status": "healthy", "message": "Redis连接正常"}


@router.get("/database")
async def dependencies_health():
    """存储依赖检查，数据库不可用时返回503"""
    db_status = await database.check_database()
    redis_status = await _check_redis()

    healthy = db_status["status"] == "healthy"
    body = {
        "overall": healthy,
        "degraded": healthy and redis_status["status"] != "healthy",
        "database": db_status,
        "redis": redis_status,
    }
    if not healthy:
        logger.warning(f"数据库不可用: {db_status['message']}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
