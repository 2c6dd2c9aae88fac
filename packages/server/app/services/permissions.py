"""
Permission evaluation for publisher members.

Decision order for has_permission, first match wins:

1. no membership in the publisher          -> deny
2. role is owner or admin                  -> allow
3. organization-level scope grants the flag -> allow
4. modpack-level scope grants the flag      -> allow (only when a modpack is given)
5. otherwise                               -> deny

The evaluator never raises for "not allowed"; it returns False. Storage
errors propagate unchanged. HTTP callers use require_permission to turn a
denial into a 403 with a MISSING_PERMISSION_<FLAG> code.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ForbiddenError, InvalidScopeTargetError
from app.models.publisher_member import PublisherMember
from app.models.scope import Scope

from modstore_shared.schemas.common import (
    LEGACY_PERMISSION_ALIASES,
    ROLE_RANK,
    Permission,
    PublisherMemberRole,
    canonical_permission,
)

log = structlog.get_logger()

ELEVATED_ROLES = {PublisherMemberRole.OWNER, PublisherMemberRole.ADMIN}


# ---------------------------------------------------------------------------
# Scope targets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScopeTarget:
    """What a scope row applies to: a whole publisher or one modpack."""

    @staticmethod
    def from_ids(
        publisher_id: Optional[uuid.UUID], modpack_id: Optional[uuid.UUID]
    ) -> "ScopeTarget":
        if (publisher_id is None) == (modpack_id is None):
            raise InvalidScopeTargetError()
        if publisher_id is not None:
            return OrganizationTarget(publisher_id)
        return ModpackTarget(modpack_id)


@dataclass(frozen=True)
class OrganizationTarget(ScopeTarget):
    publisher_id: uuid.UUID


@dataclass(frozen=True)
class ModpackTarget(ScopeTarget):
    modpack_id: uuid.UUID


def target_of(scope: Scope) -> ScopeTarget:
    return ScopeTarget.from_ids(scope.publisher_id, scope.modpack_id)


def scope_flag(scope: Optional[Scope], permission: Permission) -> bool:
    if scope is None:
        return False
    return bool(getattr(scope, permission.value, False))


def scope_flags(scope: Scope) -> dict[Permission, bool]:
    """Canonical flags only; aliased legacy columns are never written by grants."""
    return {
        perm: scope_flag(scope, perm)
        for perm in Permission
        if perm not in LEGACY_PERMISSION_ALIASES
    }


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class PermissionStore(Protocol):
    async def get_member(
        self, user_id: uuid.UUID, publisher_id: uuid.UUID
    ) -> Optional[PublisherMember]: ...

    async def get_scope(
        self, member_id: uuid.UUID, target: ScopeTarget
    ) -> Optional[Scope]: ...


def scope_filter(target: ScopeTarget):
    """WHERE clause selecting the scope row for a target."""
    if isinstance(target, OrganizationTarget):
        return (Scope.publisher_id == target.publisher_id) & (Scope.modpack_id.is_(None))
    return (Scope.modpack_id == target.modpack_id) & (Scope.publisher_id.is_(None))


class SqlPermissionStore:
    """PermissionStore backed by the request's database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_member(
        self, user_id: uuid.UUID, publisher_id: uuid.UUID
    ) -> Optional[PublisherMember]:
        result = await self.session.execute(
            select(PublisherMember).where(
                PublisherMember.user_id == user_id,
                PublisherMember.publisher_id == publisher_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_scope(
        self, member_id: uuid.UUID, target: ScopeTarget
    ) -> Optional[Scope]:
        result = await self.session.execute(
            select(Scope).where(
                Scope.publisher_member_id == member_id,
                scope_filter(target),
            )
        )
        return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

class PermissionEvaluator:
    def __init__(self, store: PermissionStore):
        self.store = store

    async def get_role(
        self, user_id: uuid.UUID, publisher_id: uuid.UUID
    ) -> Optional[PublisherMemberRole]:
        member = await self.store.get_member(user_id, publisher_id)
        return PublisherMemberRole(member.role) if member else None

    async def has_permission(
        self,
        user_id: uuid.UUID,
        publisher_id: uuid.UUID,
        permission: Permission,
        modpack_id: Optional[uuid.UUID] = None,
    ) -> bool:
        member = await self.store.get_member(user_id, publisher_id)
        if member is None:
            return False
        if PublisherMemberRole(member.role) in ELEVATED_ROLES:
            return True
        return await self._member_has_flag(member, publisher_id, permission, modpack_id)

    async def _member_has_flag(
        self,
        member: PublisherMember,
        publisher_id: uuid.UUID,
        permission: Permission,
        modpack_id: Optional[uuid.UUID],
    ) -> bool:
        permission = canonical_permission(permission)

        org_scope = await self.store.get_scope(member.id, OrganizationTarget(publisher_id))
        if scope_flag(org_scope, permission):
            return True

        if modpack_id is not None:
            modpack_scope = await self.store.get_scope(member.id, ModpackTarget(modpack_id))
            if scope_flag(modpack_scope, permission):
                return True

        return False

    async def _modpack_check(
        self,
        user_id: uuid.UUID,
        publisher_id: uuid.UUID,
        modpack_id: uuid.UUID,
        creator_user_id: Optional[uuid.UUID],
        permission: Permission,
    ) -> bool:
        member = await self.store.get_member(user_id, publisher_id)
        if member is None:
            return False
        if PublisherMemberRole(member.role) in ELEVATED_ROLES:
            return True
        # Members always control what they authored
        if creator_user_id is not None and creator_user_id == user_id:
            return True
        return await self._member_has_flag(member, publisher_id, permission, modpack_id)

    async def can_view_modpack(
        self,
        user_id: uuid.UUID,
        publisher_id: uuid.UUID,
        modpack_id: uuid.UUID,
        modpack_creator_user_id: Optional[uuid.UUID] = None,
    ) -> bool:
        return await self._modpack_check(
            user_id, publisher_id, modpack_id, modpack_creator_user_id, Permission.MODPACK_VIEW
        )

    async def can_modify_modpack(
        self,
        user_id: uuid.UUID,
        publisher_id: uuid.UUID,
        modpack_id: uuid.UUID,
        modpack_creator_user_id: Optional[uuid.UUID] = None,
    ) -> bool:
        return await self._modpack_check(
            user_id, publisher_id, modpack_id, modpack_creator_user_id, Permission.MODPACK_MODIFY
        )

    async def can_manage_role(
        self,
        actor_user_id: uuid.UUID,
        publisher_id: uuid.UUID,
        target_role: PublisherMemberRole,
    ) -> bool:
        """Actors manage only roles strictly below their own."""
        actor_role = await self.get_role(actor_user_id, publisher_id)
        if actor_role is None:
            return False
        return ROLE_RANK[actor_role] > ROLE_RANK[PublisherMemberRole(target_role)]

    async def require_permission(
        self,
        user_id: uuid.UUID,
        publisher_id: uuid.UUID,
        permission: Permission,
        modpack_id: Optional[uuid.UUID] = None,
    ) -> None:
        if not await self.has_permission(user_id, publisher_id, permission, modpack_id):
            log.info(
                "permission.denied",
                user_id=str(user_id),
                publisher_id=str(publisher_id),
                permission=permission.value,
                modpack_id=str(modpack_id) if modpack_id else None,
            )
            raise ForbiddenError(
                f"Missing permission: {permission.value}", code=permission.error_code
            )


def evaluator_for(session: AsyncSession) -> PermissionEvaluator:
    return PermissionEvaluator(SqlPermissionStore(session))
