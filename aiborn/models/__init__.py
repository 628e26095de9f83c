"""
数据模型包初始化文件
"""

from .code import (
    Code,
    CodeType,
    CodeStatus,
    CodeErrorKind,
    CodeValidation,
    CodeRedemption,
    CodeStatistics,
    CodeListQuery,
    GenerateCodesRequest,
    normalize_code_input,
    is_valid_code_format,
)
from .entitlement import (
    Entitlement,
    EntitlementType,
    CODE_TYPE_ENTITLEMENTS,
    entitlements_for_code_type,
)
from .organization import (
    Organization,
    OrgMember,
    OrgType,
    OrgMemberRole,
    OrgMemberStatus,
    User,
)

__all__ = [
    "Code",
    "CodeType",
    "CodeStatus",
    "CodeErrorKind",
    "CodeValidation",
    "CodeRedemption",
    "CodeStatistics",
    "CodeListQuery",
    "GenerateCodesRequest",
    "normalize_code_input",
    "is_valid_code_format",
    "Entitlement",
    "EntitlementType",
    "CODE_TYPE_ENTITLEMENTS",
    "entitlements_for_code_type",
    "Organization",
    "OrgMember",
    "OrgType",
    "OrgMemberRole",
    "OrgMemberStatus",
    "User",
]
