"""
机构、成员与用户数据库操作层
"""

from typing import List, Optional
from datetime import datetime

from sqlalchemy import select, update, and_, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from aiborn.models.code import as_utc, utc_now
from aiborn.models.organization import (
    Organization, OrgMember, OrgMemberRole, OrgMemberStatus, User
)
from aiborn.models.database.organization_db import OrganizationDB, OrgMemberDB
from aiborn.models.database.user_db import UserDB


class UserRepository:
    """用户数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: str) -> Optional[UserDB]:
        result = await self.db.execute(select(UserDB).where(UserDB.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[UserDB]:
        result = await self.db.execute(
            select(UserDB).where(UserDB.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        email: str,
        name: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> UserDB:
        """按邮箱查找用户，不存在时创建"""
        email = email.strip().lower()
        user = await self.get_by_email(email)
        if user:
            return user

        user = UserDB(email=email, name=name, created_at=utc_now())
        if user_id:
            user.id = user_id
        self.db.add(user)
        await self.db.flush()
        return user

    async def find_for_identity(self, user_id: str, email: Optional[str]) -> Optional[UserDB]:
        """按令牌身份查找本地用户：先按ID，再按邮箱（受邀时按邮箱建档的用户）"""
        user = await self.get_by_id(user_id)
        if user or not email:
            return user
        return await self.get_by_email(email)

    async def ensure_user(self, user_id: str, email: Optional[str], name: Optional[str] = None) -> UserDB:
        """确保令牌中的用户存在本地记录，已有记录时返回该记录"""
        user = await self.find_for_identity(user_id, email)
        if user:
            return user
        user = UserDB(
            id=user_id,
            email=(email or f"{user_id}@users.invalid").strip().lower(),
            name=name,
            created_at=utc_now()
        )
        self.db.add(user)
        await self.db.flush()
        return user

    def to_model(self, db_user: UserDB) -> User:
        return User(
            id=db_user.id,
            email=db_user.email,
            name=db_user.name,
            created_at=as_utc(db_user.created_at)
        )


class OrganizationRepository:
    """机构与成员数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, org_id: str) -> Optional[OrganizationDB]:
        result = await self.db.execute(
            select(OrganizationDB).where(OrganizationDB.id == org_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        name: str,
        org_type: str,
        contact_email: Optional[str] = None,
        domain: Optional[str] = None
    ) -> OrganizationDB:
        """创建机构"""
        now = utc_now()
        org = OrganizationDB(
            name=name,
            type=org_type,
            contact_email=contact_email,
            domain=domain,
            created_at=now,
            updated_at=now
        )
        self.db.add(org)
        await self.db.flush()
        return org

    async def get_member(self, org_id: str, user_id: str) -> Optional[OrgMemberDB]:
        """获取成员记录（包含已移除的）"""
        result = await self.db.execute(
            select(OrgMemberDB)
            .where(and_(OrgMemberDB.org_id == org_id, OrgMemberDB.user_id == user_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add_member(
        self,
        org_id: str,
        user_id: str,
        role: OrgMemberRole,
        invited_by: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> OrgMemberDB:
        """新增成员记录"""
        member = OrgMemberDB(
            org_id=org_id,
            user_id=user_id,
            role=OrgMemberRole(role).value,
            status=OrgMemberStatus.ACTIVE.value,
            invited_by=invited_by,
            joined_at=as_utc(now) or utc_now()
        )
        self.db.add(member)
        await self.db.flush()
        return member

    async def update_member(
        self,
        member: OrgMemberDB,
        role: Optional[OrgMemberRole] = None,
        status: Optional[OrgMemberStatus] = None,
        invited_by: Optional[str] = None,
        joined_at: Optional[datetime] = None
    ) -> OrgMemberDB:
        """更新成员角色/状态"""
        values = {}
        if role is not None:
            values["role"] = OrgMemberRole(role).value
        if status is not None:
            values["status"] = OrgMemberStatus(status).value
        if invited_by is not None:
            values["invited_by"] = invited_by
        if joined_at is not None:
            values["joined_at"] = as_utc(joined_at)
        if values:
            for key, value in values.items():
                setattr(member, key, value)
            await self.db.flush()
        return member

    async def list_members(self, org_id: str, include_removed: bool = False) -> List[tuple]:
        """列出成员及其用户信息，按角色、加入时间排序"""
        role_order = case(
            (OrgMemberDB.role == OrgMemberRole.OWNER.value, 0),
            (OrgMemberDB.role == OrgMemberRole.ADMIN.value, 1),
            else_=2
        )
        query = (
            select(OrgMemberDB, UserDB)
            .join(UserDB, OrgMemberDB.user_id == UserDB.id)
            .where(OrgMemberDB.org_id == org_id)
            .order_by(role_order, OrgMemberDB.joined_at)
        )
        if not include_removed:
            query = query.where(OrgMemberDB.status == OrgMemberStatus.ACTIVE.value)

        result = await self.db.execute(query)
        return [(row.OrgMemberDB, row.UserDB) for row in result.all()]

    async def count_active_members(self, org_id: str, role: Optional[OrgMemberRole] = None) -> int:
        """统计活跃成员数量，可按角色过滤"""
        query = select(func.count(OrgMemberDB.id)).where(
            and_(
                OrgMemberDB.org_id == org_id,
                OrgMemberDB.status == OrgMemberStatus.ACTIVE.value
            )
        )
        if role is not None:
            query = query.where(OrgMemberDB.role == OrgMemberRole(role).value)
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def touch(self, org_id: str) -> None:
        """更新机构修改时间"""
        await self.db.execute(
            update(OrganizationDB)
            .where(OrganizationDB.id == org_id)
            .values(updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    def to_model(self, db_org: OrganizationDB) -> Organization:
        """转换为Pydantic模型"""
        return Organization(
            id=db_org.id,
            name=db_org.name,
            type=db_org.type,
            contact_email=db_org.contact_email,
            domain=db_org.domain,
            created_at=as_utc(db_org.created_at),
            updated_at=as_utc(db_org.updated_at)
        )

    def member_to_model(self, db_member: OrgMemberDB, db_user: Optional[UserDB] = None) -> OrgMember:
        """转换成员为Pydantic模型"""
        return OrgMember(
            id=db_member.id,
            org_id=db_member.org_id,
            user_id=db_member.user_id,
            role=db_member.role,
            status=db_member.status,
            invited_by=db_member.invited_by,
            joined_at=as_utc(db_member.joined_at),
            email=db_user.email if db_user else None,
            name=db_user.name if db_user else None
        )
