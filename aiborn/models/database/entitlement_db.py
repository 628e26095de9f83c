"""
用户权益数据库模型
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from aiborn.core.database import Base
from aiborn.models.database.code_db import generate_id


class EntitlementDB(Base):
    """用户权益表，每个用户每种权益只有一行"""

    __tablename__ = "entitlements"

    id = Column(String(50), primary_key=True, default=generate_id, comment="权益ID")
    user_id = Column(String(50), nullable=False, index=True, comment="用户ID")
    type = Column(String(30), nullable=False, comment="权益类型")
    granted_by = Column(String(50), ForeignKey("vip_codes.id"), comment="来源码ID")
    granted_at = Column(DateTime(timezone=True), server_default=func.now(), comment="授予时间")

    __table_args__ = (
        UniqueConstraint("user_id", "type", name="uq_entitlement_user_type"),
        {'comment': '用户权益表'}
    )
