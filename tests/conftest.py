"""
测试配置文件 - pytest fixtures和共用配置
"""

from datetime import timedelta
from typing import Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from aiborn.core.config import settings
from aiborn.core.database import Base
from aiborn.core.security import create_access_token
from aiborn.models.code import CodeStatus, CodeType, utc_now
from aiborn.models.database import CodeDB
from aiborn.models.database.code_db import generate_id

ADMIN_EMAIL = "admin@ai-born.org"


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """测试数据库引擎 - 每个测试一个独立的SQLite文件"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        connect_args={"timeout": 30}
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_db_engine):
    """会话工厂，并发测试中每个请求使用独立会话"""
    return async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    """测试数据库会话"""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def code_factory(session_factory):
    """在独立会话中写入VIP码并提交"""

    async def _create(
        code: str = "XYZ123",
        code_type: CodeType = CodeType.VIP_BONUS,
        status: CodeStatus = CodeStatus.ACTIVE,
        max_redemptions: Optional[int] = None,
        redemption_count: int = 0,
        valid_from=None,
        valid_until=None,
        org_id: Optional[str] = None,
        description: Optional[str] = None
    ) -> CodeDB:
        now = utc_now()
        db_code = CodeDB(
            id=generate_id(),
            code=code,
            type=code_type.value,
            status=status.value,
            max_redemptions=max_redemptions,
            redemption_count=redemption_count,
            valid_from=valid_from or now - timedelta(days=1),
            valid_until=valid_until,
            org_id=org_id,
            description=description,
            created_at=now,
            updated_at=now
        )
        async with session_factory() as session:
            session.add(db_code)
            await session.commit()
        return db_code

    return _create


@pytest.fixture
def mock_cache():
    """模拟统计缓存"""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock(return_value=True)
    cache.invalidate = AsyncMock(return_value=0)
    return cache


@pytest.fixture
def admin_settings(monkeypatch):
    """配置管理员邮箱"""
    monkeypatch.setattr(settings, "admin_emails", f"{ADMIN_EMAIL}, Ops@AI-Born.org")
    return settings


@pytest.fixture
def auth_headers():
    """生成Bearer认证头"""

    def _headers(user_id: str, email: Optional[str] = None) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, email)}"}

    return _headers
