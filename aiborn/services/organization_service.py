"""
机构与成员业务服务层
OWNER/ADMIN可管理成员；只有OWNER可以变更OWNER角色；机构至少保留一个OWNER
"""

import logging
from typing import List, Optional, Tuple

from aiborn.api.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from aiborn.core.security import CurrentUser
from aiborn.models.code import utc_now
from aiborn.models.organization import (
    MANAGER_ROLES,
    AddMemberRequest,
    Organization,
    OrganizationCreate,
    OrganizationStats,
    OrgMember,
    OrgMemberRole,
    OrgMemberStatus,
    UpdateMemberRequest,
)
from aiborn.models.database.organization_db import OrgMemberDB
from aiborn.repositories.code_repository import CodeRepository
from aiborn.repositories.organization_repository import OrganizationRepository, UserRepository

logger = logging.getLogger(__name__)


class OrganizationService:
    """机构与成员业务服务"""

    def __init__(
        self,
        org_repo: OrganizationRepository,
        user_repo: UserRepository,
        code_repo: Optional[CodeRepository] = None
    ):
        self.org_repo = org_repo
        self.user_repo = user_repo
        self.code_repo = code_repo

    async def create_organization(self, user: CurrentUser, data: OrganizationCreate) -> Organization:
        """创建机构，创建人成为OWNER"""
        owner = await self.user_repo.ensure_user(user.user_id, user.email)
        org = await self.org_repo.create(
            name=data.name,
            org_type=data.type.value,
            contact_email=data.contact_email or user.email,
            domain=data.domain
        )
        await self.org_repo.add_member(org.id, owner.id, OrgMemberRole.OWNER)
        logger.info(f"机构已创建: {org.id} name={org.name} owner={owner.id}")
        return self.org_repo.to_model(org)

    async def resolve_user_id(self, user: CurrentUser) -> str:
        """令牌身份对应的本地用户ID，没有本地记录时沿用令牌中的ID"""
        existing = await self.user_repo.find_for_identity(user.user_id, user.email)
        return existing.id if existing else user.user_id

    async def require_member(self, org_id: str, user_id: str, manage: bool = False) -> OrgMemberDB:
        """校验用户是机构的活跃成员，manage为True时要求OWNER/ADMIN"""
        if not await self.org_repo.get_by_id(org_id):
            raise NotFoundError("Organization not found", "ORG_NOT_FOUND")

        membership = await self.org_repo.get_member(org_id, user_id)
        if not membership or membership.status != OrgMemberStatus.ACTIVE.value:
            raise AuthorizationError("Not a member of this organization", "NOT_A_MEMBER")

        if manage and OrgMemberRole(membership.role) not in MANAGER_ROLES:
            raise AuthorizationError("Insufficient permissions", "INSUFFICIENT_ROLE")

        return membership

    async def get_organization(
        self,
        org_id: str,
        user_id: str
    ) -> Tuple[Organization, OrgMemberRole, OrganizationStats]:
        """获取机构详情、当前用户角色和统计"""
        membership = await self.require_member(org_id, user_id)
        org = await self.org_repo.get_by_id(org_id)

        stats = OrganizationStats(member_count=await self.org_repo.count_active_members(org_id))
        if self.code_repo:
            stats.code_stats = await self.code_repo.get_statistics(org_id=org_id)

        return self.org_repo.to_model(org), OrgMemberRole(membership.role), stats

    async def list_members(self, org_id: str, user_id: str) -> List[OrgMember]:
        """列出活跃成员"""
        await self.require_member(org_id, user_id)
        rows = await self.org_repo.list_members(org_id)
        return [self.org_repo.member_to_model(member, user) for member, user in rows]

    async def add_member(
        self,
        org_id: str,
        actor_id: str,
        request: AddMemberRequest
    ) -> Tuple[OrgMember, bool]:
        """
        按邮箱添加成员，返回(成员, 是否为重新激活)

        已移除的成员会被重新激活；活跃成员重复添加视为冲突。
        """
        actor = await self.require_member(org_id, actor_id, manage=True)
        if request.role == OrgMemberRole.OWNER and actor.role != OrgMemberRole.OWNER.value:
            raise AuthorizationError("Only owners can change owner roles", "OWNER_ROLE_REQUIRED")

        user = await self.user_repo.get_or_create(
            request.email, name=request.name or request.email.split("@")[0]
        )

        existing = await self.org_repo.get_member(org_id, user.id)
        if existing:
            if existing.status == OrgMemberStatus.ACTIVE.value:
                raise ConflictError("User is already a member", "ALREADY_MEMBER")

            member = await self.org_repo.update_member(
                existing,
                role=request.role,
                status=OrgMemberStatus.ACTIVE,
                invited_by=actor_id,
                joined_at=utc_now()
            )
            await self.org_repo.touch(org_id)
            logger.info(f"成员已重新激活: org={org_id} user={user.id} by={actor_id}")
            return self.org_repo.member_to_model(member, user), True

        member = await self.org_repo.add_member(org_id, user.id, request.role, invited_by=actor_id)
        await self.org_repo.touch(org_id)
        logger.info(f"成员已添加: org={org_id} user={user.id} role={request.role.value} by={actor_id}")
        return self.org_repo.member_to_model(member, user), False

    async def update_member(
        self,
        org_id: str,
        actor_id: str,
        target_user_id: str,
        request: UpdateMemberRequest
    ) -> OrgMember:
        """更新成员角色或状态"""
        if request.role is None and request.status is None:
            raise ValidationError("Nothing to update")

        actor = await self.require_member(org_id, actor_id, manage=True)
        target = await self._get_target(org_id, target_user_id)

        touches_owner = (
            target.role == OrgMemberRole.OWNER.value or request.role == OrgMemberRole.OWNER
        )
        if touches_owner and actor.role != OrgMemberRole.OWNER.value:
            raise AuthorizationError("Only owners can change owner roles", "OWNER_ROLE_REQUIRED")

        loses_owner = target.role == OrgMemberRole.OWNER.value and (
            (request.role is not None and request.role != OrgMemberRole.OWNER)
            or request.status == OrgMemberStatus.REMOVED
        )
        if loses_owner:
            await self._ensure_not_last_owner(org_id)

        member = await self.org_repo.update_member(target, role=request.role, status=request.status)
        await self.org_repo.touch(org_id)
        user = await self.user_repo.get_by_id(target_user_id)
        logger.info(
            f"成员已更新: org={org_id} user={target_user_id} role={member.role} "
            f"status={member.status} by={actor_id}"
        )
        return self.org_repo.member_to_model(member, user)

    async def remove_member(self, org_id: str, actor_id: str, target_user_id: str) -> OrgMember:
        """移除成员（状态置为REMOVED，不删除记录）"""
        actor = await self.require_member(org_id, actor_id, manage=True)
        target = await self._get_target(org_id, target_user_id)

        if target.role == OrgMemberRole.OWNER.value:
            await self._ensure_not_last_owner(org_id)
            if actor.role != OrgMemberRole.OWNER.value:
                raise AuthorizationError("Cannot remove an owner", "OWNER_ROLE_REQUIRED")

        member = await self.org_repo.update_member(target, status=OrgMemberStatus.REMOVED)
        await self.org_repo.touch(org_id)
        logger.info(f"成员已移除: org={org_id} user={target_user_id} by={actor_id}")
        return self.org_repo.member_to_model(member, await self.user_repo.get_by_id(target_user_id))

    async def _get_target(self, org_id: str, user_id: str) -> OrgMemberDB:
        target = await self.org_repo.get_member(org_id, user_id)
        if not target or target.status != OrgMemberStatus.ACTIVE.value:
            raise NotFoundError("Member not found", "MEMBER_NOT_FOUND")
        return target

    async def _ensure_not_last_owner(self, org_id: str) -> None:
        owners = await self.org_repo.count_active_members(org_id, role=OrgMemberRole.OWNER)
        if owners <= 1:
            raise ValidationError(
                "Cannot remove the only owner. Transfer ownership first.", "LAST_OWNER"
            )
