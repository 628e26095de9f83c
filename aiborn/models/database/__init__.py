"""
数据库模型包初始化文件
"""

from .code_db import CodeDB, CodeRedemptionDB
from .entitlement_db import EntitlementDB
from .organization_db import OrganizationDB, OrgMemberDB
from .user_db import UserDB

__all__ = [
    "CodeDB",
    "CodeRedemptionDB",
    "EntitlementDB",
    "OrganizationDB",
    "OrgMemberDB",
    "UserDB",
]
