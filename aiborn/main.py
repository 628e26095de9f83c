from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from aiborn.core.config import settings
from aiborn.core.redis import redis_manager
from aiborn.core.database import init_database, close_database
from aiborn.services.stats_cache import stats_cache
from aiborn.api.health import router as health_router
from aiborn.api.codes import router as codes_router
from aiborn.api.admin_codes import router as admin_codes_router
from aiborn.api.entitlements import router as entitlements_router, excerpt_router
from aiborn.api.organizations import router as organizations_router
from aiborn.api.exceptions import (
    validation_exception_handler,
    http_exception_handler,
    database_exception_handler,
    general_exception_handler,
    business_exception_handler,
    BusinessException
)

# 简化日志配置
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动AI-Born VIP服务")

    try:
        await init_database()
        logger.info("PostgreSQL数据库初始化成功")
    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    # Redis为可选组件，不可用时限流放行、统计不缓存
    try:
        await redis_manager.init_redis()
        stats_cache.attach(redis_manager.redis_pool)
        logger.info("Redis初始化成功")
    except Exception as e:
        logger.warning(f"Redis不可用，限流与缓存降级运行: {e}")

    logger.info("应用启动完成")

    yield

    logger.info("正在关闭应用")
    stats_cache.detach()
    await redis_manager.close_redis()
    await close_database()
    logger.info("应用关闭完成")


def create_app() -> FastAPI:
    """创建FastAPI应用"""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="AI-Born VIP码兑换与权益服务",
        debug=settings.debug,
        lifespan=lifespan
    )

    # CORS中间件
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.site_url] if settings.is_production else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由
    application.include_router(health_router)
    application.include_router(codes_router)
    application.include_router(admin_codes_router)
    application.include_router(entitlements_router)
    application.include_router(excerpt_router)
    application.include_router(organizations_router)

    # 注册异常处理器
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(SQLAlchemyError, database_exception_handler)
    application.add_exception_handler(BusinessException, business_exception_handler)
    application.add_exception_handler(Exception, general_exception_handler)

    @application.get("/")
    async def root():
        """根路径"""
        return {
            "message": f"欢迎使用 {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
        }

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "aiborn.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
