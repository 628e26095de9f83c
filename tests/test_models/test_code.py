"""
VIP码与权益模型测试
"""

import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError

from aiborn.models.code import (
    Code,
    CodeErrorKind,
    CodeStatus,
    CodeType,
    CodeValidation,
    GenerateCodesRequest,
    ValidateCodeResponse,
    as_utc,
    format_code_display,
    is_valid_code_format,
    normalize_code_input,
)
from aiborn.models.entitlement import (
    CODE_TYPE_ENTITLEMENTS,
    EntitlementType,
    entitlements_for_code_type,
)


def _code(**overrides) -> Code:
    now = datetime.now(timezone.utc)
    data = dict(
        id="code_001",
        code="XYZ123",
        type=CodeType.VIP_BONUS,
        status=CodeStatus.ACTIVE,
        max_redemptions=1,
        redemption_count=0,
        valid_from=now - timedelta(days=1),
        valid_until=None,
    )
    data.update(overrides)
    return Code(**data)


class TestNormalization:
    """码规范化测试"""

    @pytest.mark.parametrize("raw", ["ab-cd12", "ABCD12", "ab cd12", " abc-d12 ", "Ab\tCd-12"])
    def test_variants_normalize_identically(self, raw):
        assert normalize_code_input(raw) == "ABCD12"
        assert is_valid_code_format(normalize_code_input(raw))

    @pytest.mark.parametrize("raw", ["12", "", "ABCDEFG", "ABC_12", "ÄBC123", "AB!D12"])
    def test_invalid_formats(self, raw):
        assert not is_valid_code_format(normalize_code_input(raw))

    def test_format_display(self):
        assert format_code_display("ABC123") == "ABC-123"
        assert format_code_display("ABC") == "ABC"


class TestCodeRedeemability:
    """兑换条件检查顺序测试"""

    def test_active_code_is_redeemable(self):
        code = _code()
        assert code.check_redeemable() is None
        assert code.redemptions_remaining == 1

    def test_unlimited_code_has_no_remaining_count(self):
        assert _code(max_redemptions=None, redemption_count=500).redemptions_remaining is None

    def test_status_checked_first(self):
        code = _code(
            status=CodeStatus.REVOKED,
            valid_until=datetime.now(timezone.utc) - timedelta(days=1)
        )
        assert code.check_redeemable() == CodeErrorKind.NOT_ACTIVE
        assert code.error_message(CodeErrorKind.NOT_ACTIVE) == "Code has been revoked"

    def test_not_yet_valid(self):
        code = _code(valid_from=datetime.now(timezone.utc) + timedelta(hours=1))
        assert code.check_redeemable() == CodeErrorKind.NOT_YET_VALID

    def test_expired_regardless_of_remaining_slots(self):
        code = _code(
            max_redemptions=100,
            redemption_count=0,
            valid_until=datetime.now(timezone.utc) - timedelta(seconds=1)
        )
        assert code.check_redeemable() == CodeErrorKind.EXPIRED

    def test_limit_reached(self):
        code = _code(max_redemptions=3, redemption_count=3)
        assert code.check_redeemable() == CodeErrorKind.REDEMPTION_LIMIT_REACHED
        assert code.redemptions_remaining == 0

    def test_fully_redeemed_status_reports_limit(self):
        code = _code(status=CodeStatus.REDEEMED, max_redemptions=1, redemption_count=1)
        assert code.check_redeemable() == CodeErrorKind.REDEMPTION_LIMIT_REACHED

    def test_naive_datetimes_treated_as_utc(self):
        naive = datetime(2030, 1, 1, 12, 0, 0)
        code = _code(valid_from=naive)
        assert code.valid_from.tzinfo is not None
        assert code.valid_from == as_utc(naive)
        assert code.check_redeemable(datetime(2029, 12, 31, tzinfo=timezone.utc)) == CodeErrorKind.NOT_YET_VALID


class TestValidationResponse:
    """校验结果与接口响应测试"""

    def test_success_response_uses_camel_case(self):
        response = ValidateCodeResponse.from_validation(CodeValidation.success(_code()))
        body = response.model_dump(by_alias=True, exclude_none=True)

        assert body == {"valid": True, "code": {"type": "VIP_BONUS", "redemptionsRemaining": 1}}

    def test_failure_response_carries_error_kind(self):
        validation = CodeValidation.failure(CodeErrorKind.INVALID_FORMAT)
        body = ValidateCodeResponse.from_validation(validation).model_dump(by_alias=True, exclude_none=True)

        assert body["valid"] is False
        assert body["errorCode"] == "INVALID_FORMAT"
        assert "code" not in body


class TestGenerateCodesRequest:
    """批量生成请求校验测试"""

    def test_accepts_camel_case_fields(self):
        request = GenerateCodesRequest.model_validate({
            "count": 5,
            "type": "PARTNER",
            "maxRedemptions": 10,
            "validUntil": "2030-01-01T00:00:00+08:00",
        })
        assert request.max_redemptions == 10
        assert request.valid_until == datetime(2029, 12, 31, 16, 0, tzinfo=timezone.utc)
        assert request.format == "json"

    @pytest.mark.parametrize("count", [0, 10001])
    def test_count_bounds(self, count):
        with pytest.raises(ValidationError):
            GenerateCodesRequest(count=count, type=CodeType.MEDIA)

    def test_max_redemptions_must_be_positive(self):
        with pytest.raises(ValidationError):
            GenerateCodesRequest(count=1, type=CodeType.MEDIA, max_redemptions=0)

    def test_valid_until_after_valid_from(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValidationError):
            GenerateCodesRequest(count=1, type=CodeType.MEDIA, valid_from=now, valid_until=now)


class TestEntitlementMapping:
    """码类型到权益的映射测试"""

    @pytest.mark.parametrize("code_type,expected", [
        (CodeType.VIP_PREVIEW, {EntitlementType.EARLY_EXCERPT}),
        (CodeType.VIP_BONUS, {EntitlementType.ENHANCED_BONUS}),
        (CodeType.VIP_LAUNCH, {EntitlementType.LAUNCH_EVENT}),
        (CodeType.PARTNER, {EntitlementType.BONUS_PACK, EntitlementType.BULK_DISCOUNT}),
        (CodeType.MEDIA, {EntitlementType.EARLY_EXCERPT, EntitlementType.PRIORITY_SUPPORT}),
        (CodeType.INFLUENCER, {EntitlementType.ENHANCED_BONUS, EntitlementType.PRIORITY_SUPPORT}),
    ])
    def test_mapping(self, code_type, expected):
        assert set(entitlements_for_code_type(code_type)) == expected

    def test_every_code_type_is_mapped(self):
        assert set(CODE_TYPE_ENTITLEMENTS) == set(CodeType)

    def test_mapping_is_read_only(self):
        with pytest.raises(TypeError):
            CODE_TYPE_ENTITLEMENTS[CodeType.VIP_BONUS] = (EntitlementType.BONUS_PACK,)

    def test_accepts_plain_string(self):
        assert entitlements_for_code_type("VIP_PREVIEW") == (EntitlementType.EARLY_EXCERPT,)
