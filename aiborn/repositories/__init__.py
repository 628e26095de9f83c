"""
仓库包初始化文件 - 数据库访问层
"""

from .code_repository import CodeRepository
from .entitlement_repository import EntitlementRepository
from .organization_repository import OrganizationRepository, UserRepository

__all__ = [
    "CodeRepository",
    "EntitlementRepository",
    "OrganizationRepository",
    "UserRepository",
]
