"""
用户数据库模型
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from aiborn.core.database import Base
from aiborn.models.database.code_db import generate_id


class UserDB(Base):
    """用户表"""

    __tablename__ = "users"

    id = Column(String(50), primary_key=True, default=generate_id, comment="用户ID")
    email = Column(String(255), nullable=False, unique=True, index=True, comment="邮箱（小写）")
    name = Column(String(200), comment="姓名")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")

    __table_args__ = (
        {'comment': '用户表'}
    )
