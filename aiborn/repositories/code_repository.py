"""
VIP码数据库操作层
"""

from typing import List, Optional, Dict, Iterable, Set, Tuple
from datetime import datetime

from sqlalchemy import select, update, and_, or_, desc, func, case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from aiborn.models.code import (
    Code, CodeStatus, CodeStatistics, CodeListQuery, OrgBrief, as_utc, utc_now
)
from aiborn.models.database.code_db import CodeDB, CodeRedemptionDB, generate_id
from aiborn.models.database.organization_db import OrganizationDB


def dialect_insert(db: AsyncSession, table):
    """按当前数据库方言构造支持 ON CONFLICT 的 insert 语句"""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert(table)
    return sqlite.insert(table)


class CodeRepository:
    """VIP码数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str, refresh: bool = False) -> Optional[CodeDB]:
        """根据规范化后的码获取记录，refresh为True时忽略会话缓存"""
        query = select(CodeDB).where(CodeDB.code == code)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_id(self, code_id: str) -> Optional[CodeDB]:
        """根据ID获取记录"""
        result = await self.db.execute(
            select(CodeDB)
            .where(CodeDB.id == code_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_existing_codes(self, candidates: Iterable[str]) -> Set[str]:
        """返回候选码中已存在的部分"""
        candidates = list(candidates)
        if not candidates:
            return set()
        result = await self.db.execute(
            select(CodeDB.code).where(CodeDB.code.in_(candidates))
        )
        return set(result.scalars().all())

    async def create_codes(
        self,
        codes: List[str],
        code_type: str,
        valid_from: datetime,
        valid_until: Optional[datetime] = None,
        max_redemptions: Optional[int] = None,
        description: Optional[str] = None,
        org_id: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> List[CodeDB]:
        """批量创建VIP码"""
        now = utc_now()
        rows = [
            CodeDB(
                code=code,
                type=code_type,
                status=CodeStatus.ACTIVE.value,
                description=description,
                max_redemptions=max_redemptions,
                redemption_count=0,
                valid_from=as_utc(valid_from),
                valid_until=as_utc(valid_until),
                org_id=org_id,
                created_by=created_by,
                created_at=now,
                updated_at=now
            )
            for code in codes
        ]
        self.db.add_all(rows)
        await self.db.flush()
        return rows

    async def try_consume_slot(self, code_id: str, now: Optional[datetime] = None) -> bool:
        """
        原子地占用一次兑换名额

        单条条件UPDATE完成比较与自增：只有码仍为ACTIVE、在有效期内且未达上限时才会命中。
        达到上限时同时将状态置为REDEEMED。返回是否占用成功。
        """
        now = as_utc(now) or utc_now()
        reaches_limit = and_(
            CodeDB.max_redemptions.is_not(None),
            CodeDB.redemption_count + 1 >= CodeDB.max_redemptions
        )
        stmt = (
            update(CodeDB)
            .where(
                and_(
                    CodeDB.id == code_id,
                    CodeDB.status == CodeStatus.ACTIVE.value,
                    CodeDB.valid_from <= now,
                    or_(CodeDB.valid_until.is_(None), CodeDB.valid_until >= now),
                    or_(
                        CodeDB.max_redemptions.is_(None),
                        CodeDB.redemption_count < CodeDB.max_redemptions
                    )
                )
            )
            .values(
                redemption_count=CodeDB.redemption_count + 1,
                status=case(
                    (reaches_limit, CodeStatus.REDEEMED.value),
                    else_=CodeDB.status
                ),
                updated_at=now
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def record_redemption(
        self,
        code_id: str,
        user_id: str,
        ip_address: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> bool:
        """写入兑换记录，同一用户重复兑换同一个码时不写入并返回False"""
        stmt = dialect_insert(self.db, CodeRedemptionDB).values(
            id=generate_id(),
            code_id=code_id,
            user_id=user_id,
            ip_address=ip_address,
            redeemed_at=as_utc(now) or utc_now()
        ).on_conflict_do_nothing(index_elements=["code_id", "user_id"])
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def has_user_redeemed(self, code_id: str, user_id: str) -> bool:
        """用户是否已兑换过该码"""
        result = await self.db.execute(
            select(func.count(CodeRedemptionDB.id)).where(
                and_(
                    CodeRedemptionDB.code_id == code_id,
                    CodeRedemptionDB.user_id == user_id
                )
            )
        )
        return (result.scalar() or 0) > 0

    def _apply_filters(self, query, filters: CodeListQuery):
        conditions = []
        if filters.type:
            conditions.append(CodeDB.type == filters.type.value)
        if filters.status:
            conditions.append(CodeDB.status == filters.status.value)
        if filters.org_id:
            conditions.append(CodeDB.org_id == filters.org_id)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            conditions.append(
                or_(CodeDB.code.ilike(pattern), CodeDB.description.ilike(pattern))
            )
        if conditions:
            query = query.where(and_(*conditions))
        return query

    async def list_codes(
        self,
        filters: CodeListQuery
    ) -> Tuple[List[Tuple[CodeDB, Optional[OrganizationDB]]], int]:
        """分页查询VIP码，按创建时间倒序，返回(记录与所属机构, 总数)"""
        count_query = self._apply_filters(select(func.count(CodeDB.id)), filters)
        total = (await self.db.execute(count_query)).scalar() or 0

        query = self._apply_filters(
            select(CodeDB, OrganizationDB).outerjoin(
                OrganizationDB, CodeDB.org_id == OrganizationDB.id
            ),
            filters
        ).order_by(desc(CodeDB.created_at), desc(CodeDB.id)).limit(filters.limit).offset(filters.offset)

        result = await self.db.execute(query)
        return [(row.CodeDB, row.OrganizationDB) for row in result.all()], total

    async def get_statistics(
        self,
        code_type: Optional[str] = None,
        org_id: Optional[str] = None
    ) -> CodeStatistics:
        """按状态汇总VIP码数量和兑换次数"""
        query = select(
            CodeDB.status,
            func.count(CodeDB.id).label("code_count"),
            func.coalesce(func.sum(CodeDB.redemption_count), 0).label("redemptions")
        ).group_by(CodeDB.status)
        if code_type:
            query = query.where(CodeDB.type == code_type)
        if org_id:
            query = query.where(CodeDB.org_id == org_id)

        result = await self.db.execute(query)
        by_status: Dict[str, Dict[str, int]] = {
            row.status: {"count": row.code_count, "redemptions": int(row.redemptions)}
            for row in result.all()
        }

        total = sum(item["count"] for item in by_status.values())
        total_redemptions = sum(item["redemptions"] for item in by_status.values())

        def _count(status: CodeStatus) -> int:
            return by_status.get(status.value, {}).get("count", 0)

        return CodeStatistics(
            total_codes=total,
            active_count=_count(CodeStatus.ACTIVE),
            redeemed_count=_count(CodeStatus.REDEEMED),
            expired_count=_count(CodeStatus.EXPIRED),
            revoked_count=_count(CodeStatus.REVOKED),
            total_redemptions=total_redemptions,
            redemption_rate=round(total_redemptions / total * 100, 2) if total else 0.0
        )

    async def revoke(self, code_id: str, now: Optional[datetime] = None) -> bool:
        """作废VIP码，只对ACTIVE状态生效"""
        result = await self.db.execute(
            update(CodeDB)
            .where(and_(CodeDB.id == code_id, CodeDB.status == CodeStatus.ACTIVE.value))
            .values(status=CodeStatus.REVOKED.value, updated_at=as_utc(now) or utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def expire_stale_codes(self, now: Optional[datetime] = None) -> int:
        """将已过失效时间的ACTIVE码置为EXPIRED，返回影响行数"""
        now = as_utc(now) or utc_now()
        result = await self.db.execute(
            update(CodeDB)
            .where(
                and_(
                    CodeDB.status == CodeStatus.ACTIVE.value,
                    CodeDB.valid_until.is_not(None),
                    CodeDB.valid_until < now
                )
            )
            .values(status=CodeStatus.EXPIRED.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def rollback(self) -> None:
        """回滚当前事务"""
        await self.db.rollback()

    def to_model(self, db_code: CodeDB) -> Code:
        """转换为Pydantic模型"""
        return Code(
            id=db_code.id,
            code=db_code.code,
            type=db_code.type,
            status=db_code.status,
            description=db_code.description,
            max_redemptions=db_code.max_redemptions,
            redemption_count=db_code.redemption_count or 0,
            valid_from=db_code.valid_from,
            valid_until=db_code.valid_until,
            org_id=db_code.org_id,
            created_by=db_code.created_by,
            created_at=db_code.created_at,
            updated_at=db_code.updated_at
        )

    @staticmethod
    def to_org_brief(db_org: Optional[OrganizationDB]) -> Optional[OrgBrief]:
        if db_org is None:
            return None
        return OrgBrief(id=db_org.id, name=db_org.name, type=db_org.type)
