"""
接口测试fixtures - 使用httpx直接调用ASGI应用，数据库会话替换为测试SQLite
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from aiborn.core.database import get_db_session
from aiborn.main import create_app


class FakeRedisManager:
    """内存计数器，替代Redis做限流计数"""

    is_available = True

    def __init__(self):
        self.counts = {}

    async def incr_window(self, key: str, window_seconds: int):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key], window_seconds


@pytest.fixture
def app(session_factory):
    """应用实例，不执行lifespan，Redis不可用时限流放行"""
    application = create_app()

    async def _override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = _override_session
    return application


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def fake_redis():
    return FakeRedisManager()
