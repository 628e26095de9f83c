"""
服务包初始化文件
"""

from .stats_cache import StatsCache, stats_cache
from .code_service import CodeService
from .entitlement_service import EntitlementService
from .organization_service import OrganizationService

__all__ = [
    "StatsCache",
    "stats_cache",
    "CodeService",
    "EntitlementService",
    "OrganizationService",
]
