"""
VIP码数据库模型
"""

import uuid

from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func
from aiborn.core.database import Base


def generate_id() -> str:
    return uuid.uuid4().hex


class CodeDB(Base):
    """VIP码数据库表"""

    __tablename__ = "vip_codes"

    # 主键和基本信息
    id = Column(String(50), primary_key=True, default=generate_id, comment="码ID")
    code = Column(String(6), nullable=False, unique=True, index=True, comment="规范化后的6位码")
    type = Column(String(20), nullable=False, index=True, comment="码类型")
    status = Column(String(20), nullable=False, default="ACTIVE", index=True, comment="码状态")
    description = Column(Text, comment="描述")

    # 兑换限制
    max_redemptions = Column(Integer, comment="最大兑换次数，空为不限")
    redemption_count = Column(Integer, nullable=False, default=0, comment="已兑换次数")

    # 有效期
    valid_from = Column(DateTime(timezone=True), nullable=False, comment="生效时间")
    valid_until = Column(DateTime(timezone=True), index=True, comment="失效时间，空为永不过期")

    # 归属
    org_id = Column(String(50), ForeignKey("organizations.id"), index=True, comment="所属机构ID")
    created_by = Column(String(255), comment="创建人")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        Index("ix_vip_codes_status_valid_until", "status", "valid_until"),
        {'comment': 'VIP码信息表'}
    )


class CodeRedemptionDB(Base):
    """VIP码兑换记录表"""

    __tablename__ = "vip_code_redemptions"

    id = Column(String(50), primary_key=True, default=generate_id, comment="记录ID")
    code_id = Column(String(50), ForeignKey("vip_codes.id"), nullable=False, index=True, comment="码ID")
    user_id = Column(String(50), nullable=False, index=True, comment="用户ID")
    ip_address = Column(String(64), comment="兑换时IP")
    redeemed_at = Column(DateTime(timezone=True), server_default=func.now(), comment="兑换时间")

    __table_args__ = (
        UniqueConstraint("code_id", "user_id", name="uq_vip_code_redemption_user"),
        {'comment': 'VIP码兑换记录表'}
    )
