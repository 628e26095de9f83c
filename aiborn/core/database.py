"""
数据库引擎与会话管理
请求内通过 get_db_session 获得会话，命令行脚本通过 session_scope 获得会话，二者都在成功时提交、异常时回滚
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from aiborn.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker] = None


def build_engine(database_url: str) -> AsyncEngine:
    """按运行环境与数据库方言创建引擎"""
    kwargs = {"echo": settings.debug and not settings.is_testing}

    if database_url.startswith("sqlite"):
        # SQLite文件库：并发写入时等待锁而不是立即失败
        kwargs["connect_args"] = {"timeout": 30}
    elif settings.is_testing:
        kwargs["poolclass"] = NullPool
    else:
        kwargs.update(pool_pre_ping=True, pool_recycle=3600, pool_size=10, max_overflow=20)

    return create_async_engine(database_url, **kwargs)


async def init_database(database_url: Optional[str] = None) -> None:
    """创建全局引擎和会话工厂"""
    global engine, async_session_maker

    url = database_url or settings.database_url_computed
    try:
        engine = build_engine(url)
        async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    except Exception as e:
        logger.error(f"数据库引擎创建失败: {e}")
        raise

    logger.info(f"数据库引擎已创建 dialect={engine.dialect.name}")


async def close_database() -> None:
    """释放连接池"""
    global engine, async_session_maker

    if engine is not None:
        await engine.dispose()
        logger.info("数据库连接池已释放")
    engine = None
    async_session_maker = None


async def create_tables() -> None:
    """按ORM模型创建缺失的数据表"""
    import aiborn.models.database  # noqa: F401  注册全部表

    if engine is None:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """命令行与后台任务使用的事务会话"""
    if async_session_maker is None:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")

    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI依赖：一个请求一个会话"""
    async with session_scope() as session:
        yield session


async def check_database() -> dict:
    """执行 SELECT 1 检查数据库连通性"""
    if engine is None:
        return {"status": "error", "message": "数据库引擎未初始化"}

    started = time.perf_counter()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"数据库健康检查失败: {e}")
        return {"status": "error", "message": "数据库连接失败"}

    return {
        "status": "healthy",
        "message": "数据库连接正常",
        "dialect": engine.dialect.name,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }
