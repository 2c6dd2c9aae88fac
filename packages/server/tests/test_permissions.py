"""
Tests for the permission evaluator.

The evaluator runs against an in-memory PermissionStore, so these tests
exercise the decision rules without a database:
- Role supremacy for owners and admins
- Deny by default for members without scopes
- Creator bypass for view/modify
- Organization vs modpack scope additivity
- Legacy flag aliases
- Role-management hierarchy
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

import pytest

from app.core.errors import ForbiddenError, InvalidScopeTargetError
from app.services.permissions import (
    ModpackTarget,
    OrganizationTarget,
    PermissionEvaluator,
    ScopeTarget,
)
from modstore_shared.schemas.common import Permission, PublisherMemberRole

GRANULAR = [p for p in Permission if not p.value.startswith("can_")]


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

@dataclass
class FakeMember:
    user_id: uuid.UUID
    publisher_id: uuid.UUID
    role: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class FakeScope:
    def __init__(self, **flags: bool):
        for perm in Permission:
            setattr(self, perm.value, flags.get(perm.value, False))


class InMemoryStore:
    def __init__(self):
        self.members: dict[tuple[uuid.UUID, uuid.UUID], FakeMember] = {}
        self.scopes: dict[tuple[uuid.UUID, ScopeTarget], FakeScope] = {}
        self.scope_lookups = 0

    def add_member(self, publisher_id, role: PublisherMemberRole) -> FakeMember:
        member = FakeMember(user_id=uuid.uuid4(), publisher_id=publisher_id, role=role.value)
        self.members[(member.user_id, publisher_id)] = member
        return member

    def grant(self, member: FakeMember, target: ScopeTarget, *perms: Permission) -> None:
        self.scopes[(member.id, target)] = FakeScope(**{p.value: True for p in perms})

    async def get_member(self, user_id, publisher_id) -> Optional[FakeMember]:
        return self.members.get((user_id, publisher_id))

    async def get_scope(self, member_id, target) -> Optional[FakeScope]:
        self.scope_lookups += 1
        return self.scopes.get((member_id, target))


class FailingStore:
    async def get_member(self, user_id, publisher_id):
        raise ConnectionError("database unreachable")

    async def get_scope(self, member_id, target):
        raise ConnectionError("database unreachable")


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def evaluator(store) -> PermissionEvaluator:
    return PermissionEvaluator(store)


@pytest.fixture
def publisher_id() -> uuid.UUID:
    return uuid.uuid4()


# ---------------------------------------------------------------------------
# Scope targets
# ---------------------------------------------------------------------------

class TestScopeTarget:
    def test_publisher_only_is_organization_target(self):
        pid = uuid.uuid4()
        assert ScopeTarget.from_ids(pid, None) == OrganizationTarget(pid)

    def test_modpack_only_is_modpack_target(self):
        mid = uuid.uuid4()
        assert ScopeTarget.from_ids(None, mid) == ModpackTarget(mid)

    def test_both_ids_rejected(self):
        with pytest.raises(InvalidScopeTargetError) as exc_info:
            ScopeTarget.from_ids(uuid.uuid4(), uuid.uuid4())
        assert exc_info.value.code == "INVALID_SCOPE_TARGET"
        assert exc_info.value.status_code == 400

    def test_neither_id_rejected(self):
        with pytest.raises(InvalidScopeTargetError):
            ScopeTarget.from_ids(None, None)


# ---------------------------------------------------------------------------
# has_permission
# ---------------------------------------------------------------------------

class TestRoleSupremacy:
    """Owners and admins hold every permission regardless of scopes."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [PublisherMemberRole.OWNER, PublisherMemberRole.ADMIN])
    async def test_elevated_roles_have_every_flag(self, evaluator, store, publisher_id, role):
        member = store.add_member(publisher_id, role)
        for perm in Permission:
            assert await evaluator.has_permission(member.user_id, publisher_id, perm)
            assert await evaluator.has_permission(member.user_id, publisher_id, perm, uuid.uuid4())
        assert store.scope_lookups == 0

    @pytest.mark.asyncio
    async def test_admin_ignores_all_false_scope(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.ADMIN)
        store.grant(member, OrganizationTarget(publisher_id))
        assert await evaluator.has_permission(
            member.user_id, publisher_id, Permission.MODPACK_DELETE
        )


class TestDenyByDefault:
    @pytest.mark.asyncio
    async def test_member_without_scopes_denied(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        for perm in GRANULAR:
            assert not await evaluator.has_permission(member.user_id, publisher_id, perm)
            assert not await evaluator.has_permission(
                member.user_id, publisher_id, perm, uuid.uuid4()
            )

    @pytest.mark.asyncio
    async def test_non_member_denied(self, evaluator, store, publisher_id):
        owner = store.add_member(uuid.uuid4(), PublisherMemberRole.OWNER)
        assert not await evaluator.has_permission(
            owner.user_id, publisher_id, Permission.MODPACK_VIEW
        )

    @pytest.mark.asyncio
    async def test_scope_in_other_publisher_does_not_leak(self, evaluator, store, publisher_id):
        other_publisher = uuid.uuid4()
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        store.grant(member, OrganizationTarget(other_publisher), Permission.MODPACK_VIEW)
        assert not await evaluator.has_permission(
            member.user_id, publisher_id, Permission.MODPACK_VIEW
        )

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, publisher_id):
        evaluator = PermissionEvaluator(FailingStore())
        with pytest.raises(ConnectionError):
            await evaluator.has_permission(uuid.uuid4(), publisher_id, Permission.MODPACK_VIEW)


class TestScopeAdditivity:
    @pytest.mark.asyncio
    async def test_organization_scope_applies_to_any_modpack(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        store.grant(member, OrganizationTarget(publisher_id), Permission.MODPACK_VIEW)

        assert await evaluator.has_permission(
            member.user_id, publisher_id, Permission.MODPACK_VIEW, uuid.uuid4()
        )
        assert await evaluator.has_permission(
            member.user_id, publisher_id, Permission.MODPACK_VIEW
        )
        assert not await evaluator.has_permission(
            member.user_id, publisher_id, Permission.MODPACK_MODIFY, uuid.uuid4()
        )

    @pytest.mark.asyncio
    async def test_modpack_scope_applies_to_that_modpack_only(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        pack_x, pack_y = uuid.uuid4(), uuid.uuid4()
        store.grant(member, ModpackTarget(pack_x), Permission.MODPACK_MODIFY)

        assert await evaluator.has_permission(
            member.user_id, publisher_id, Permission.MODPACK_MODIFY, pack_x
        )
        assert not await evaluator.has_permission(
            member.user_id, publisher_id, Permission.MODPACK_MODIFY, pack_y
        )
        # Without a modpack the modpack-level scope is never consulted
        assert not await evaluator.has_permission(
            member.user_id, publisher_id, Permission.MODPACK_MODIFY
        )

    @pytest.mark.asyncio
    async def test_organization_and_modpack_scopes_combine(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        pack = uuid.uuid4()
        store.grant(member, OrganizationTarget(publisher_id), Permission.MODPACK_VIEW)
        store.grant(member, ModpackTarget(pack), Permission.MODPACK_PUBLISH)

        assert await evaluator.has_permission(member.user_id, publisher_id, Permission.MODPACK_VIEW, pack)
        assert await evaluator.has_permission(member.user_id, publisher_id, Permission.MODPACK_PUBLISH, pack)


class TestLegacyAliases:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "legacy, granular",
        [
            (Permission.CAN_EDIT_MODPACKS, Permission.MODPACK_MODIFY),
            (Permission.CAN_DELETE_MODPACKS, Permission.MODPACK_DELETE),
            (Permission.CAN_PUBLISH_VERSIONS, Permission.MODPACK_PUBLISH),
        ],
    )
    async def test_legacy_name_resolves_to_granular_flag(
        self, evaluator, store, publisher_id, legacy, granular
    ):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        store.grant(member, OrganizationTarget(publisher_id), granular)
        assert await evaluator.has_permission(member.user_id, publisher_id, legacy)

    @pytest.mark.asyncio
    async def test_unaliased_legacy_flag_is_first_class(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        store.grant(member, OrganizationTarget(publisher_id), Permission.CAN_CREATE_MODPACKS)
        assert await evaluator.has_permission(
            member.user_id, publisher_id, Permission.CAN_CREATE_MODPACKS
        )
        assert not await evaluator.has_permission(
            member.user_id, publisher_id, Permission.CAN_MANAGE_MEMBERS
        )


# ---------------------------------------------------------------------------
# Modpack checks
# ---------------------------------------------------------------------------

class TestCreatorBypass:
    @pytest.mark.asyncio
    async def test_creator_can_view_and_modify_without_scopes(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        pack = uuid.uuid4()
        assert await evaluator.can_view_modpack(member.user_id, publisher_id, pack, member.user_id)
        assert await evaluator.can_modify_modpack(member.user_id, publisher_id, pack, member.user_id)

    @pytest.mark.asyncio
    async def test_non_creator_member_needs_scope(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        pack = uuid.uuid4()
        creator = uuid.uuid4()
        assert not await evaluator.can_view_modpack(member.user_id, publisher_id, pack, creator)

        store.grant(member, ModpackTarget(pack), Permission.MODPACK_VIEW)
        assert await evaluator.can_view_modpack(member.user_id, publisher_id, pack, creator)
        assert not await evaluator.can_modify_modpack(member.user_id, publisher_id, pack, creator)

    @pytest.mark.asyncio
    async def test_former_member_loses_creator_bypass(self, evaluator, publisher_id):
        creator = uuid.uuid4()
        assert not await evaluator.can_modify_modpack(creator, publisher_id, uuid.uuid4(), creator)


# ---------------------------------------------------------------------------
# Role management
# ---------------------------------------------------------------------------

class TestCanManageRole:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "actor_role, target_role, allowed",
        [
            (PublisherMemberRole.OWNER, PublisherMemberRole.ADMIN, True),
            (PublisherMemberRole.OWNER, PublisherMemberRole.MEMBER, True),
            (PublisherMemberRole.OWNER, PublisherMemberRole.OWNER, False),
            (PublisherMemberRole.ADMIN, PublisherMemberRole.MEMBER, True),
            (PublisherMemberRole.ADMIN, PublisherMemberRole.ADMIN, False),
            (PublisherMemberRole.ADMIN, PublisherMemberRole.OWNER, False),
            (PublisherMemberRole.MEMBER, PublisherMemberRole.MEMBER, False),
        ],
    )
    async def test_hierarchy(self, evaluator, store, publisher_id, actor_role, target_role, allowed):
        actor = store.add_member(publisher_id, actor_role)
        assert await evaluator.can_manage_role(actor.user_id, publisher_id, target_role) is allowed

    @pytest.mark.asyncio
    async def test_non_member_manages_nothing(self, evaluator, publisher_id):
        assert not await evaluator.can_manage_role(
            uuid.uuid4(), publisher_id, PublisherMemberRole.MEMBER
        )


class TestRequirePermission:
    @pytest.mark.asyncio
    async def test_denial_carries_missing_flag_code(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        with pytest.raises(ForbiddenError) as exc_info:
            await evaluator.require_permission(
                member.user_id, publisher_id, Permission.MODPACK_DELETE
            )
        assert exc_info.value.code == "MISSING_PERMISSION_MODPACK_DELETE"
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_granted_permission_passes(self, evaluator, store, publisher_id):
        member = store.add_member(publisher_id, PublisherMemberRole.MEMBER)
        store.grant(member, OrganizationTarget(publisher_id), Permission.MODPACK_DELETE)
        await evaluator.require_permission(member.user_id, publisher_id, Permission.MODPACK_DELETE)
