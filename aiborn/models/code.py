"""
VIP码相关数据模型
"""

import re
from datetime import datetime, timezone
from typing import List, Optional, Literal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


CODE_LENGTH = 6
CODE_PATTERN = re.compile(r"^[A-Z0-9]{6}$")
_STRIP_PATTERN = re.compile(r"[\s-]")


def utc_now() -> datetime:
    """当前UTC时间（带时区）"""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """统一转换为UTC时间，无时区信息的时间按UTC处理"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_code_input(raw: str) -> str:
    """去除空白和连字符并转为大写"""
    return _STRIP_PATTERN.sub("", raw or "").upper()


def is_valid_code_format(normalized: str) -> bool:
    """校验规范化后的码是否为6位字母数字"""
    return bool(CODE_PATTERN.match(normalized))


def format_code_display(code: str, separator: str = "-") -> str:
    """格式化显示，如 ABC-123"""
    if len(code) == CODE_LENGTH:
        return f"{code[:3]}{separator}{code[3:]}"
    return code


class CamelModel(BaseModel):
    """对外接口模型基类，输出camelCase字段，同时接受snake_case输入"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CodeType(str, Enum):
    """VIP码类型枚举"""
    VIP_PREVIEW = "VIP_PREVIEW"  # 抢先阅读
    VIP_BONUS = "VIP_BONUS"  # 增强版赠品包
    VIP_LAUNCH = "VIP_LAUNCH"  # 发布会活动
    PARTNER = "PARTNER"  # 合作机构
    MEDIA = "MEDIA"  # 媒体
    INFLUENCER = "INFLUENCER"  # 创作者


class CodeStatus(str, Enum):
    """VIP码状态枚举，只允许从ACTIVE单向流转"""
    ACTIVE = "ACTIVE"
    REDEEMED = "REDEEMED"  # 兑换次数已用完
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class CodeErrorKind(str, Enum):
    """校验/兑换失败类型"""
    INVALID_FORMAT = "INVALID_FORMAT"
    NOT_FOUND = "NOT_FOUND"
    NOT_ACTIVE = "NOT_ACTIVE"
    NOT_YET_VALID = "NOT_YET_VALID"
    EXPIRED = "EXPIRED"
    REDEMPTION_LIMIT_REACHED = "REDEMPTION_LIMIT_REACHED"


CODE_ERROR_MESSAGES = {
    CodeErrorKind.INVALID_FORMAT: "Invalid code format. Codes are 6 letters or numbers.",
    CodeErrorKind.NOT_FOUND: "Code not found",
    CodeErrorKind.NOT_ACTIVE: "Code is not active",
    CodeErrorKind.NOT_YET_VALID: "Code is not yet valid",
    CodeErrorKind.EXPIRED: "Code has expired",
    CodeErrorKind.REDEMPTION_LIMIT_REACHED: "Code has reached maximum redemptions",
}

# 非ACTIVE状态的细分提示
CODE_STATUS_MESSAGES = {
    CodeStatus.EXPIRED: "Code has expired",
    CodeStatus.REVOKED: "Code has been revoked",
}

CODE_TYPE_LABELS = {
    CodeType.VIP_PREVIEW: "VIP Preview Access",
    CodeType.VIP_BONUS: "VIP Bonus Pack",
    CodeType.VIP_LAUNCH: "Launch Event Access",
    CodeType.PARTNER: "Partner Access",
    CodeType.MEDIA: "Media Access",
    CodeType.INFLUENCER: "Influencer Access",
}


class Code(BaseModel):
    """VIP码基础模型"""

    id: str = Field(..., description="码ID")
    code: str = Field(..., min_length=CODE_LENGTH, max_length=CODE_LENGTH, description="规范化后的码")
    type: CodeType = Field(..., description="码类型")
    status: CodeStatus = Field(default=CodeStatus.ACTIVE, description="码状态")
    description: Optional[str] = Field(None, max_length=500, description="描述")
    max_redemptions: Optional[int] = Field(None, ge=1, description="最大兑换次数，空为不限")
    redemption_count: int = Field(default=0, ge=0, description="已兑换次数")
    valid_from: datetime = Field(default_factory=utc_now, description="生效时间")
    valid_until: Optional[datetime] = Field(None, description="失效时间，空为永不过期")
    org_id: Optional[str] = Field(None, description="所属机构ID")
    created_by: Optional[str] = Field(None, description="创建人")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("valid_from", "valid_until", "created_at", "updated_at")
    @classmethod
    def _to_utc(cls, v):
        return as_utc(v)

    @property
    def redemptions_remaining(self) -> Optional[int]:
        """剩余兑换次数，不限次返回None"""
        if self.max_redemptions is None:
            return None
        return max(self.max_redemptions - self.redemption_count, 0)

    def check_redeemable(self, now: Optional[datetime] = None) -> Optional[CodeErrorKind]:
        """按顺序检查是否可兑换，返回第一个失败原因，可兑换返回None"""
        now = as_utc(now) or utc_now()

        if self.status == CodeStatus.REDEEMED:
            # REDEEMED只会由名额用尽触发
            return CodeErrorKind.REDEMPTION_LIMIT_REACHED

        if self.status != CodeStatus.ACTIVE:
            return CodeErrorKind.NOT_ACTIVE

        if self.valid_from > now:
            return CodeErrorKind.NOT_YET_VALID

        if self.valid_until is not None and self.valid_until < now:
            return CodeErrorKind.EXPIRED

        if self.max_redemptions is not None and self.redemption_count >= self.max_redemptions:
            return CodeErrorKind.REDEMPTION_LIMIT_REACHED

        return None

    def error_message(self, kind: CodeErrorKind) -> str:
        """失败提示文案"""
        if kind == CodeErrorKind.NOT_ACTIVE:
            return CODE_STATUS_MESSAGES.get(self.status, CODE_ERROR_MESSAGES[kind])
        return CODE_ERROR_MESSAGES[kind]


class CodeValidation(BaseModel):
    """VIP码校验/兑换结果"""

    is_valid: bool = Field(..., description="是否有效")
    code: Optional[Code] = Field(None, description="码信息")
    error_code: Optional[CodeErrorKind] = Field(None, description="失败类型")
    error: Optional[str] = Field(None, description="失败提示")
    redemptions_remaining: Optional[int] = Field(None, description="剩余兑换次数")

    @classmethod
    def success(cls, code: Code) -> "CodeValidation":
        return cls(is_valid=True, code=code, redemptions_remaining=code.redemptions_remaining)

    @classmethod
    def failure(cls, kind: CodeErrorKind, code: Optional[Code] = None) -> "CodeValidation":
        message = code.error_message(kind) if code else CODE_ERROR_MESSAGES[kind]
        return cls(is_valid=False, code=code, error_code=kind, error=message)


class CodeRedemption(BaseModel):
    """VIP码兑换结果"""

    validation: CodeValidation
    already_redeemed: bool = False
    granted: List[str] = Field(default_factory=list, description="本次新增的权益")
    entitlements: List[str] = Field(default_factory=list, description="该码类型对应的全部权益")


# ---------- 接口请求/响应模型 ----------


class ValidateCodeRequest(CamelModel):
    """校验/兑换请求"""

    code: str = Field(..., min_length=1, max_length=64)


class CodeSummary(CamelModel):
    """不限次数的码 redemptionsRemaining 输出为 null"""

    type: CodeType
    redemptions_remaining: Optional[int] = None


class ValidateCodeResponse(CamelModel):
    """校验结果响应，接口按 exclude_unset 输出：成功时只有 code，失败时只有 error 和 errorCode"""

    valid: bool
    code: Optional[CodeSummary] = None
    error: Optional[str] = None
    error_code: Optional[CodeErrorKind] = None

    @classmethod
    def from_validation(cls, validation: CodeValidation) -> "ValidateCodeResponse":
        if not validation.is_valid:
            return cls(valid=False, error=validation.error, error_code=validation.error_code)
        return cls(
            valid=True,
            code=CodeSummary(
                type=validation.code.type,
                redemptions_remaining=validation.redemptions_remaining
            )
        )


class RedeemCodeResponse(ValidateCodeResponse):
    """兑换结果响应"""

    already_redeemed: bool = False
    entitlements: List[str] = Field(default_factory=list)

    @classmethod
    def from_redemption(cls, redemption: CodeRedemption) -> "RedeemCodeResponse":
        base = ValidateCodeResponse.from_validation(redemption.validation)
        return cls(
            **{name: getattr(base, name) for name in base.model_fields_set},
            already_redeemed=redemption.already_redeemed,
            entitlements=redemption.entitlements if redemption.validation.is_valid else []
        )


class GenerateCodesRequest(CamelModel):
    """批量生成请求"""

    count: int = Field(..., ge=1, le=10000, description="生成数量")
    type: CodeType
    description: Optional[str] = Field(None, max_length=500)
    max_redemptions: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    org_id: Optional[str] = None
    format: Literal["json", "csv"] = "json"

    @field_validator("valid_from", "valid_until")
    @classmethod
    def _to_utc(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def _check_window(self):
        if self.valid_from and self.valid_until and self.valid_until <= self.valid_from:
            raise ValueError("validUntil must be later than validFrom")
        return self


class GeneratedCode(CamelModel):
    id: str
    code: str
    type: CodeType
    valid_from: datetime
    valid_until: Optional[datetime] = None


class GenerateCodesResponse(CamelModel):
    success: bool = True
    count: int
    codes: List[GeneratedCode]


class CodeListQuery(BaseModel):
    """列表查询条件"""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=1000)
    type: Optional[CodeType] = None
    status: Optional[CodeStatus] = None
    search: Optional[str] = Field(None, max_length=64)
    org_id: Optional[str] = None
    include_stats: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class CodeStatistics(CamelModel):
    """VIP码统计"""

    total_codes: int = 0
    active_count: int = 0
    redeemed_count: int = 0
    expired_count: int = 0
    revoked_count: int = 0
    total_redemptions: int = 0
    redemption_rate: float = 0.0  # 百分比


class OrgBrief(CamelModel):
    id: str
    name: str
    type: str


class CodeListItem(CamelModel):
    id: str
    code: str
    type: CodeType
    status: CodeStatus
    description: Optional[str] = None
    max_redemptions: Optional[int] = None
    redemption_count: int
    valid_from: datetime
    valid_until: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    org_id: Optional[str] = None
    org: Optional[OrgBrief] = None

    @classmethod
    def from_code(cls, code: Code, org: Optional[OrgBrief] = None) -> "CodeListItem":
        return cls(**code.model_dump(exclude={"code"}), code=code.code, org=org)


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class CodeListData(CamelModel):
    codes: List[CodeListItem]
    pagination: Pagination
    stats: Optional[CodeStatistics] = None


class CodeListResponse(CamelModel):
    success: bool = True
    data: CodeListData


class CodeActionResponse(CamelModel):
    success: bool = True
    code: Optional[CodeListItem] = None
    affected: int = 0
    message: Optional[str] = None
