"""
机构与成员数据模型
"""

import re
from datetime import datetime
from typing import Optional, List
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from aiborn.models.code import CamelModel, CodeStatistics


class OrgType(str, Enum):
    """机构类型枚举"""
    CORPORATE = "CORPORATE"
    EDUCATIONAL = "EDUCATIONAL"
    NONPROFIT = "NONPROFIT"
    GOVERNMENT = "GOVERNMENT"
    OTHER = "OTHER"


class OrgMemberRole(str, Enum):
    """成员角色枚举"""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class OrgMemberStatus(str, Enum):
    """成员状态枚举"""
    ACTIVE = "ACTIVE"
    REMOVED = "REMOVED"


# 可管理成员和机构码的角色
MANAGER_ROLES = (OrgMemberRole.OWNER, OrgMemberRole.ADMIN)

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(value: str) -> str:
    """校验邮箱格式并转为小写"""
    value = (value or "").strip().lower()
    if not _EMAIL_PATTERN.match(value):
        raise ValueError("invalid email address")
    return value


class User(BaseModel):
    """用户模型"""

    id: str
    email: str
    name: Optional[str] = None
    created_at: Optional[datetime] = None


class Organization(CamelModel):
    """机构模型"""

    id: str
    name: str
    type: OrgType = OrgType.CORPORATE
    contact_email: Optional[str] = None
    domain: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrgMember(CamelModel):
    """机构成员模型"""

    id: str
    org_id: str
    user_id: str
    role: OrgMemberRole = OrgMemberRole.MEMBER
    status: OrgMemberStatus = OrgMemberStatus.ACTIVE
    invited_by: Optional[str] = None
    joined_at: Optional[datetime] = None
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == OrgMemberStatus.ACTIVE

    @property
    def can_manage(self) -> bool:
        return self.is_active and self.role in MANAGER_ROLES


class OrganizationCreate(CamelModel):
    """创建机构请求"""

    name: str = Field(..., min_length=1, max_length=200)
    type: OrgType = OrgType.CORPORATE
    contact_email: Optional[str] = Field(None, max_length=255)
    domain: Optional[str] = Field(None, max_length=255)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("contact_email")
    @classmethod
    def _check_contact_email(cls, v: Optional[str]) -> Optional[str]:
        return normalize_email(v) if v else None

    @field_validator("domain")
    @classmethod
    def _lower_domain(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v


class AddMemberRequest(CamelModel):
    """添加成员请求"""

    email: str = Field(..., max_length=255)
    role: OrgMemberRole = OrgMemberRole.MEMBER
    name: Optional[str] = Field(None, max_length=200)

    @field_validator("email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        return normalize_email(v)


class UpdateMemberRequest(CamelModel):
    """更新成员请求"""

    role: Optional[OrgMemberRole] = None
    status: Optional[OrgMemberStatus] = None


class OrganizationStats(CamelModel):
    member_count: int = 0
    code_stats: CodeStatistics = Field(default_factory=CodeStatistics)


class OrganizationDetailResponse(CamelModel):
    success: bool = True
    organization: Organization
    role: OrgMemberRole
    stats: OrganizationStats


class OrganizationResponse(CamelModel):
    success: bool = True
    organization: Organization


class MemberResponse(CamelModel):
    success: bool = True
    member: OrgMember
    message: Optional[str] = None


class MemberListResponse(CamelModel):
    success: bool = True
    members: List[OrgMember]
