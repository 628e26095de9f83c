"""
用户权益数据模型
"""

from datetime import datetime
from types import MappingProxyType
from typing import Optional, List, Tuple
from enum import Enum

from pydantic import BaseModel, Field

from aiborn.models.code import CamelModel, CodeType


class EntitlementType(str, Enum):
    """权益类型枚举"""
    EARLY_EXCERPT = "EARLY_EXCERPT"  # 抢先试读章节
    ENHANCED_BONUS = "ENHANCED_BONUS"  # 增强版赠品
    LAUNCH_EVENT = "LAUNCH_EVENT"  # 发布会入场
    BONUS_PACK = "BONUS_PACK"  # 赠品包
    BULK_DISCOUNT = "BULK_DISCOUNT"  # 团购折扣
    PRIORITY_SUPPORT = "PRIORITY_SUPPORT"  # 优先支持


# 码类型 -> 权益类型，只读
CODE_TYPE_ENTITLEMENTS = MappingProxyType({
    CodeType.VIP_PREVIEW: (EntitlementType.EARLY_EXCERPT,),
    CodeType.VIP_BONUS: (EntitlementType.ENHANCED_BONUS,),
    CodeType.VIP_LAUNCH: (EntitlementType.LAUNCH_EVENT,),
    CodeType.PARTNER: (EntitlementType.BONUS_PACK, EntitlementType.BULK_DISCOUNT),
    CodeType.MEDIA: (EntitlementType.EARLY_EXCERPT, EntitlementType.PRIORITY_SUPPORT),
    CodeType.INFLUENCER: (EntitlementType.ENHANCED_BONUS, EntitlementType.PRIORITY_SUPPORT),
})


def entitlements_for_code_type(code_type: CodeType) -> Tuple[EntitlementType, ...]:
    """返回码类型对应的权益类型"""
    return CODE_TYPE_ENTITLEMENTS[CodeType(code_type)]


class Entitlement(BaseModel):
    """用户权益模型"""

    id: str = Field(..., description="权益ID")
    user_id: str = Field(..., description="用户ID")
    type: EntitlementType = Field(..., description="权益类型")
    granted_by: Optional[str] = Field(None, description="来源码ID")
    granted_at: Optional[datetime] = Field(None, description="授予时间")


class EntitlementItem(CamelModel):
    type: EntitlementType
    granted_by: Optional[str] = None
    granted_at: Optional[datetime] = None


class EntitlementListResponse(CamelModel):
    success: bool = True
    entitlements: List[EntitlementItem]


class EntitlementCheckResponse(CamelModel):
    type: EntitlementType
    has_entitlement: bool


class ExcerptEntitlementResponse(CamelModel):
    """试读权限检查响应"""

    has_entitlement: bool
    download_url: Optional[str] = None
    message: Optional[str] = None
