"""
VIP码业务服务层
提供VIP码校验、兑换、批量生成、查询和状态管理的业务逻辑
"""

import logging
import math
from datetime import datetime
from typing import List, Optional

from aiborn.api.exceptions import BusinessException, ConflictError, NotFoundError, ValidationError
from aiborn.core.config import settings
from aiborn.models.code import (
    Code,
    CodeErrorKind,
    CodeListData,
    CodeListItem,
    CodeListQuery,
    CodeRedemption,
    CodeStatistics,
    CodeValidation,
    GenerateCodesRequest,
    GeneratedCode,
    Pagination,
    as_utc,
    is_valid_code_format,
    normalize_code_input,
    utc_now,
)
from aiborn.models.entitlement import entitlements_for_code_type
from aiborn.repositories.code_repository import CodeRepository
from aiborn.repositories.entitlement_repository import EntitlementRepository
from aiborn.repositories.organization_repository import OrganizationRepository
from aiborn.services.code_generator import CodeGenerationError, generate_unique_codes
from aiborn.services.stats_cache import StatsCache, stats_cache

logger = logging.getLogger(__name__)


class CodeService:
    """VIP码业务服务"""

    def __init__(
        self,
        code_repo: CodeRepository,
        entitlement_repo: EntitlementRepository,
        org_repo: Optional[OrganizationRepository] = None,
        cache: Optional[StatsCache] = None
    ):
        self.code_repo = code_repo
        self.entitlement_repo = entitlement_repo
        self.org_repo = org_repo
        self.cache = cache or stats_cache

    async def validate_code(self, raw_code: str, now: Optional[datetime] = None) -> CodeValidation:
        """校验VIP码，只读"""
        normalized = normalize_code_input(raw_code)
        if not is_valid_code_format(normalized):
            return CodeValidation.failure(CodeErrorKind.INVALID_FORMAT)

        db_code = await self.code_repo.get_by_code(normalized)
        if not db_code:
            return CodeValidation.failure(CodeErrorKind.NOT_FOUND)

        code = self.code_repo.to_model(db_code)
        error_kind = code.check_redeemable(now)
        if error_kind:
            return CodeValidation.failure(error_kind, code)

        return CodeValidation.success(code)

    async def redeem_code(
        self,
        raw_code: str,
        user_id: str,
        ip_address: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CodeRedemption:
        """
        兑换VIP码并授予对应权益

        名额通过条件UPDATE原子占用，占用失败时不做任何写入并返回重新判定的失败原因。
        同一用户重复兑换同一个码不会再次占用名额，结果标记为already_redeemed。
        """
        now = as_utc(now) or utc_now()
        normalized = normalize_code_input(raw_code)
        if not is_valid_code_format(normalized):
            return CodeRedemption(validation=CodeValidation.failure(CodeErrorKind.INVALID_FORMAT))

        db_code = await self.code_repo.get_by_code(normalized, refresh=True)
        if not db_code:
            logger.info(f"兑换失败，码不存在: {normalized} user={user_id} ip={ip_address}")
            return CodeRedemption(validation=CodeValidation.failure(CodeErrorKind.NOT_FOUND))

        code = self.code_repo.to_model(db_code)
        entitlement_types = entitlements_for_code_type(code.type)
        entitlement_names = [t.value for t in entitlement_types]

        if await self.code_repo.has_user_redeemed(code.id, user_id):
            logger.info(f"用户已兑换过该码: {code.code} user={user_id}")
            return CodeRedemption(
                validation=CodeValidation.success(code),
                already_redeemed=True,
                entitlements=entitlement_names
            )

        error_kind = code.check_redeemable(now)
        if error_kind:
            logger.info(f"兑换失败: {code.code} user={user_id} ip={ip_address} reason={error_kind.value}")
            return CodeRedemption(validation=CodeValidation.failure(error_kind, code))

        if not await self.code_repo.try_consume_slot(code.id, now):
            # 校验后名额被并发请求占用或状态已变化
            current = await self.code_repo.get_by_id(code.id)
            current_code = self.code_repo.to_model(current) if current else code
            error_kind = current_code.check_redeemable(now) or CodeErrorKind.REDEMPTION_LIMIT_REACHED
            logger.info(
                f"兑换并发冲突: {code.code} user={user_id} ip={ip_address} reason={error_kind.value}"
            )
            return CodeRedemption(validation=CodeValidation.failure(error_kind, current_code))

        if not await self.code_repo.record_redemption(code.id, user_id, ip_address, now):
            # 同一用户的并发请求已写入兑换记录，撤销本次占用
            await self.code_repo.rollback()
            logger.info(f"用户并发重复兑换，已回滚: {code.code} user={user_id}")
            return CodeRedemption(
                validation=CodeValidation.success(code),
                already_redeemed=True,
                entitlements=entitlement_names
            )

        granted = await self.entitlement_repo.grant_many(
            user_id, entitlement_types, granted_by=code.id, now=now
        )

        redeemed = await self.code_repo.get_by_id(code.id)
        redeemed_code = self.code_repo.to_model(redeemed) if redeemed else code
        await self.cache.invalidate()

        logger.info(
            f"兑换成功: {code.code} type={code.type.value} user={user_id} ip={ip_address} "
            f"count={redeemed_code.redemption_count} granted={[t.value for t in granted]}"
        )
        return CodeRedemption(
            validation=CodeValidation.success(redeemed_code),
            granted=[t.value for t in granted],
            entitlements=entitlement_names
        )

    async def generate_codes(
        self,
        request: GenerateCodesRequest,
        created_by: Optional[str] = None
    ) -> List[GeneratedCode]:
        """批量生成VIP码"""
        if request.count > settings.code_generation_max_count:
            raise ValidationError(
                f"Count must be between 1 and {settings.code_generation_max_count}"
            )

        valid_from = request.valid_from or utc_now()
        if request.valid_until and request.valid_until <= valid_from:
            raise ValidationError("validUntil must be later than validFrom")

        if request.org_id and self.org_repo:
            if not await self.org_repo.get_by_id(request.org_id):
                raise NotFoundError("Organization not found", "ORG_NOT_FOUND")

        try:
            codes = await generate_unique_codes(self.code_repo, request.count)
        except CodeGenerationError as e:
            logger.error(f"生成VIP码失败: {e}")
            raise BusinessException(
                "Unable to generate unique codes, please retry",
                "CODE_GENERATION_FAILED",
                status_code=503
            )

        rows = await self.code_repo.create_codes(
            codes,
            code_type=request.type.value,
            valid_from=valid_from,
            valid_until=request.valid_until,
            max_redemptions=request.max_redemptions,
            description=request.description,
            org_id=request.org_id,
            created_by=created_by
        )
        await self.cache.invalidate()

        logger.info(f"生成VIP码 {len(rows)} 个 type={request.type.value} by={created_by}")
        return [
            GeneratedCode(
                id=row.id,
                code=row.code,
                type=row.type,
                valid_from=as_utc(row.valid_from),
                valid_until=as_utc(row.valid_until)
            )
            for row in rows
        ]

    async def list_codes(self, query: CodeListQuery) -> CodeListData:
        """分页查询VIP码，可附带统计"""
        rows, total = await self.code_repo.list_codes(query)
        items = [
            CodeListItem.from_code(
                self.code_repo.to_model(db_code),
                org=self.code_repo.to_org_brief(db_org)
            )
            for db_code, db_org in rows
        ]

        stats = None
        if query.include_stats:
            stats = await self.get_statistics(
                code_type=query.type.value if query.type else None,
                org_id=query.org_id
            )

        return CodeListData(
            codes=items,
            pagination=Pagination(
                page=query.page,
                limit=query.limit,
                total=total,
                total_pages=math.ceil(total / query.limit) if total else 0
            ),
            stats=stats
        )

    async def get_statistics(
        self,
        code_type: Optional[str] = None,
        org_id: Optional[str] = None,
        use_cache: bool = True
    ) -> CodeStatistics:
        """获取VIP码统计，结果按过滤条件缓存"""
        if use_cache:
            cached = await self.cache.get(code_type, org_id)
            if cached:
                return cached

        stats = await self.code_repo.get_statistics(code_type=code_type, org_id=org_id)

        if use_cache:
            await self.cache.set(stats, code_type, org_id)

        return stats

    async def revoke_code(self, code_id: str) -> Code:
        """作废VIP码"""
        db_code = await self.code_repo.get_by_id(code_id)
        if not db_code:
            raise NotFoundError("Code not found", "CODE_NOT_FOUND")

        if not await self.code_repo.revoke(code_id):
            raise ConflictError(
                f"Only ACTIVE codes can be revoked (current status: {db_code.status})",
                "INVALID_STATUS_TRANSITION"
            )

        db_code = await self.code_repo.get_by_id(code_id)
        await self.cache.invalidate()
        logger.info(f"VIP码已作废: {db_code.code}")
        return self.code_repo.to_model(db_code)

    async def expire_codes(self, now: Optional[datetime] = None) -> int:
        """过期扫描：将已过失效时间的ACTIVE码置为EXPIRED"""
        affected = await self.code_repo.expire_stale_codes(now)
        if affected:
            await self.cache.invalidate()
        logger.info(f"过期扫描完成，共 {affected} 个码置为EXPIRED")
        return affected
