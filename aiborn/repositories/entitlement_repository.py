"""
用户权益数据库操作层
"""

from typing import List, Optional, Iterable
from datetime import datetime

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from aiborn.models.code import as_utc, utc_now
from aiborn.models.entitlement import Entitlement, EntitlementType
from aiborn.models.database.code_db import generate_id
from aiborn.models.database.entitlement_db import EntitlementDB
from aiborn.repositories.code_repository import dialect_insert


class EntitlementRepository:
    """用户权益数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def grant(
        self,
        user_id: str,
        entitlement_type: EntitlementType,
        granted_by: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> bool:
        """授予权益，已拥有时不做任何修改并返回False"""
        stmt = dialect_insert(self.db, EntitlementDB).values(
            id=generate_id(),
            user_id=user_id,
            type=EntitlementType(entitlement_type).value,
            granted_by=granted_by,
            granted_at=as_utc(now) or utc_now()
        ).on_conflict_do_nothing(index_elements=["user_id", "type"])
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def grant_many(
        self,
        user_id: str,
        entitlement_types: Iterable[EntitlementType],
        granted_by: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[EntitlementType]:
        """批量授予权益，返回本次新增的权益类型"""
        now = as_utc(now) or utc_now()
        granted = []
        for entitlement_type in entitlement_types:
            if await self.grant(user_id, entitlement_type, granted_by, now):
                granted.append(EntitlementType(entitlement_type))
        return granted

    async def has(self, user_id: str, entitlement_type: EntitlementType) -> bool:
        """用户是否拥有某项权益"""
        result = await self.db.execute(
            select(func.count(EntitlementDB.id)).where(
                and_(
                    EntitlementDB.user_id == user_id,
                    EntitlementDB.type == EntitlementType(entitlement_type).value
                )
            )
        )
        return (result.scalar() or 0) > 0

    async def list_for_user(self, user_id: str) -> List[EntitlementDB]:
        """获取用户全部权益，按授予时间排序"""
        result = await self.db.execute(
            select(EntitlementDB)
            .where(EntitlementDB.user_id == user_id)
            .order_by(EntitlementDB.granted_at, EntitlementDB.type)
        )
        return result.scalars().all()

    def to_model(self, db_entitlement: EntitlementDB) -> Entitlement:
        """转换为Pydantic模型"""
        return Entitlement(
            id=db_entitlement.id,
            user_id=db_entitlement.user_id,
            type=db_entitlement.type,
            granted_by=db_entitlement.granted_by,
            granted_at=as_utc(db_entitlement.granted_at)
        )
