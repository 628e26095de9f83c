"""
机构与成员数据库模型
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from aiborn.core.database import Base
from aiborn.models.database.code_db import generate_id


class OrganizationDB(Base):
    """机构表"""

    __tablename__ = "organizations"

    id = Column(String(50), primary_key=True, default=generate_id, comment="机构ID")
    name = Column(String(200), nullable=False, comment="机构名称")
    type = Column(String(20), nullable=False, default="CORPORATE", comment="机构类型")
    contact_email = Column(String(255), comment="联系邮箱")
    domain = Column(String(255), index=True, comment="机构域名")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        {'comment': '机构信息表'}
    )


class OrgMemberDB(Base):
    """机构成员表"""

    __tablename__ = "org_members"

    id = Column(String(50), primary_key=True, default=generate_id, comment="成员记录ID")
    org_id = Column(String(50), ForeignKey("organizations.id"), nullable=False, index=True, comment="机构ID")
    user_id = Column(String(50), ForeignKey("users.id"), nullable=False, index=True, comment="用户ID")
    role = Column(String(20), nullable=False, default="MEMBER", comment="角色")
    status = Column(String(20), nullable=False, default="ACTIVE", comment="状态")
    invited_by = Column(String(50), comment="邀请人用户ID")
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), comment="加入时间")

    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_org_member"),
        {'comment': '机构成员表'}
    )
