"""
VIP码服务数据库表初始化脚本

运行方式:
python -m aiborn.scripts.init_tables
"""

import asyncio
import logging

from sqlalchemy import text

from aiborn.core.config import settings
from aiborn.core.database import init_database, close_database, create_tables

logger = logging.getLogger(__name__)

# 兑换计数上限与枚举取值的检查约束
CHECK_CONSTRAINTS = [
    """
    ALTER TABLE vip_codes ADD CONSTRAINT chk_vip_codes_redemption_limit
    CHECK (max_redemptions IS NULL OR redemption_count <= max_redemptions)
    """,
    """
    ALTER TABLE vip_codes ADD CONSTRAINT chk_vip_codes_status
    CHECK (status IN ('ACTIVE', 'REDEEMED', 'EXPIRED', 'REVOKED'))
    """,
    """
    ALTER TABLE org_members ADD CONSTRAINT chk_org_members_role
    CHECK (role IN ('OWNER', 'ADMIN', 'MEMBER'))
    """,
]


async def init_tables() -> None:
    """创建全部数据表和PostgreSQL检查约束"""
    try:
        await init_database()
        logger.info("开始创建数据表...")
        await create_tables()
        logger.info("数据表创建成功")

        from aiborn.core.database import engine as db_engine

        if db_engine.dialect.name == "postgresql":
            await _create_check_constraints(db_engine)

        logger.info(f"数据库 {settings.db_name} 初始化完成")

    except Exception as e:
        logger.error(f"创建数据表失败: {e}")
        raise
    finally:
        await close_database()


async def _create_check_constraints(db_engine) -> None:
    """创建检查约束，已存在的约束跳过"""
    for sql in CHECK_CONSTRAINTS:
        async with db_engine.begin() as conn:
            name = sql.split("CONSTRAINT")[1].split()[0]
            result = await conn.execute(
                text("SELECT 1 FROM pg_constraint WHERE conname = :name"),
                {"name": name}
            )
            if result.fetchone():
                logger.info(f"约束已存在: {name}")
                continue
            await conn.execute(text(sql))
            logger.info(f"约束创建成功: {name}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    asyncio.run(init_tables())
