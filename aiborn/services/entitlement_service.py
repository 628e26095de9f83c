"""
用户权益业务服务层
"""

import logging
from typing import List

from aiborn.core.config import settings
from aiborn.models.entitlement import Entitlement, EntitlementType, ExcerptEntitlementResponse
from aiborn.repositories.entitlement_repository import EntitlementRepository

logger = logging.getLogger(__name__)


class EntitlementService:
    """用户权益业务服务，只读"""

    def __init__(self, entitlement_repo: EntitlementRepository):
        self.entitlement_repo = entitlement_repo

    async def has_entitlement(self, user_id: str, entitlement_type: EntitlementType) -> bool:
        """用户是否拥有某项权益，查询异常直接向上抛出"""
        return await self.entitlement_repo.has(user_id, EntitlementType(entitlement_type))

    async def list_entitlements(self, user_id: str) -> List[Entitlement]:
        """列出用户全部权益"""
        rows = await self.entitlement_repo.list_for_user(user_id)
        return [self.entitlement_repo.to_model(row) for row in rows]

    async def check_excerpt_access(self, user_id: str) -> ExcerptEntitlementResponse:
        """试读章节权限检查"""
        if await self.has_entitlement(user_id, EntitlementType.EARLY_EXCERPT):
            return ExcerptEntitlementResponse(
                has_entitlement=True,
                download_url=settings.excerpt_download_path
            )

        logger.info(f"用户无试读权限: {user_id}")
        return ExcerptEntitlementResponse(
            has_entitlement=False,
            message="Redeem a VIP code or request the free excerpt to unlock this chapter."
        )
