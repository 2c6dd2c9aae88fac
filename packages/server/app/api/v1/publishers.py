"""
Publisher and team management endpoints.

GET    /api/v1/publishers                                   — List publishers for the caller
POST   /api/v1/publishers                                   — Create a publisher (caller becomes owner)
GET    /api/v1/publishers/{publisher_id}                    — Get publisher details (members only)
GET    /api/v1/publishers/{publisher_id}/members            — List members
POST   /api/v1/publishers/{publisher_id}/members            — Add a member
PATCH  /api/v1/publishers/{publisher_id}/members/{user_id}  — Change a member's role
DELETE /api/v1/publishers/{publisher_id}/members/{user_id}  — Remove a member and their scopes
GET    /api/v1/publishers/{publisher_id}/members/{user_id}/permissions         — Role + scopes
POST   /api/v1/publishers/{publisher_id}/members/{user_id}/permissions/grant   — Grant flags
POST   /api/v1/publishers/{publisher_id}/members/{user_id}/permissions/revoke  — Revoke flags
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.errors import InvalidScopeTargetError
from app.models.scope import Scope
from app.models.user import User
from app.services import modpacks as modpack_service
from app.services import publishers as publisher_service
from app.services import scopes as scope_service
from app.services.permissions import (
    ModpackTarget,
    OrganizationTarget,
    ScopeTarget,
    evaluator_for,
    scope_flags,
)
from modstore_shared.schemas.common import Permission, PublisherMemberRole
from modstore_shared.schemas.publishers import (
    MemberAddRequest,
    MemberListResponse,
    MemberPermissionsResponse,
    MemberResponse,
    MemberRoleUpdateRequest,
    PublisherCreateRequest,
    PublisherListResponse,
    PublisherResponse,
    ScopeGrantRequest,
    ScopeResponse,
    ScopeRevokeRequest,
)

log = structlog.get_logger()
router = APIRouter()


def scope_response(scope: Scope) -> ScopeResponse:
    return ScopeResponse(
        id=scope.id,
        publisher_member_id=scope.publisher_member_id,
        publisher_id=scope.publisher_id,
        modpack_id=scope.modpack_id,
        permissions=scope_flags(scope),
    )


# ---------------------------------------------------------------------------
# Publishers
# ---------------------------------------------------------------------------

@router.get("", response_model=PublisherListResponse)
async def list_publishers(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List publishers the caller belongs to, with their role."""
    items = await publisher_service.list_user_publishers(user.id, session)
    return PublisherListResponse(data=items)


@router.post("", response_model=PublisherResponse, status_code=201)
async def create_publisher(
    body: PublisherCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a publisher. The creator becomes its owner."""
    publisher = await publisher_service.create_publisher(body, user.id, session)
    return PublisherResponse.model_validate(publisher)


@router.get("/{publisher_id}", response_model=PublisherResponse)
async def get_publisher(
    publisher_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    publisher = await publisher_service.get_publisher(publisher_id, session)
    await publisher_service.require_member(publisher_id, user.id, session)
    return PublisherResponse.model_validate(publisher)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/{publisher_id}/members", response_model=MemberListResponse)
async def list_members(
    publisher_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List the publisher's team (members only)."""
    await publisher_service.get_publisher(publisher_id, session)
    await publisher_service.require_member(publisher_id, user.id, session)
    members = await publisher_service.list_members(publisher_id, session)
    return MemberListResponse(data=[MemberResponse.model_validate(m) for m in members])


@router.post("/{publisher_id}/members", response_model=MemberResponse, status_code=201)
async def add_member(
    publisher_id: uuid.UUID,
    body: MemberAddRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Add a user with a role strictly below the caller's."""
    await publisher_service.get_publisher(publisher_id, session)
    member = await publisher_service.add_member(
        publisher_id, user.id, body.user_id, body.role, session
    )
    return MemberResponse.model_validate(member)


@router.patch("/{publisher_id}/members/{user_id}", response_model=MemberResponse)
async def update_member_role(
    publisher_id: uuid.UUID,
    user_id: uuid.UUID,
    body: MemberRoleUpdateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await publisher_service.get_publisher(publisher_id, session)
    member = await publisher_service.update_member_role(
        publisher_id, user.id, user_id, body.role, session
    )
    return MemberResponse.model_validate(member)


@router.delete("/{publisher_id}/members/{user_id}", status_code=204)
async def remove_member(
    publisher_id: uuid.UUID,
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await publisher_service.get_publisher(publisher_id, session)
    await publisher_service.remove_member(publisher_id, user.id, user_id, session)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Permissions (scopes)
# ---------------------------------------------------------------------------

@router.get(
    "/{publisher_id}/members/{user_id}/permissions",
    response_model=MemberPermissionsResponse,
)
async def get_member_permissions(
    publisher_id: uuid.UUID,
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """A member's role and scopes. Members may read their own; others need can_manage_members."""
    await publisher_service.get_publisher(publisher_id, session)
    if user_id != user.id:
        await evaluator_for(session).require_permission(
            user.id, publisher_id, Permission.CAN_MANAGE_MEMBERS
        )
    member = await publisher_service.get_member(publisher_id, user_id, session)
    scopes = await scope_service.get_member_scopes(session, member.id)

    organization_scope: Optional[ScopeResponse] = None
    modpack_scopes = []
    for scope in scopes:
        if scope.publisher_id is not None:
            organization_scope = scope_response(scope)
        else:
            modpack_scopes.append(scope_response(scope))

    return MemberPermissionsResponse(
        user_id=user_id,
        publisher_id=publisher_id,
        role=PublisherMemberRole(member.role),
        organization_scope=organization_scope,
        modpack_scopes=modpack_scopes,
    )


async def _check_grant_target(
    publisher_id: uuid.UUID, target: ScopeTarget, session: AsyncSession
) -> None:
    if isinstance(target, OrganizationTarget) and target.publisher_id != publisher_id:
        raise InvalidScopeTargetError("Scope publisher_id must match the publisher in the path")
    if isinstance(target, ModpackTarget):
        await modpack_service.get_modpack(publisher_id, target.modpack_id, session)


async def _manageable_member(
    publisher_id: uuid.UUID,
    actor_id: uuid.UUID,
    user_id: uuid.UUID,
    session: AsyncSession,
):
    await publisher_service.get_publisher(publisher_id, session)
    await publisher_service.require_role_manager(
        publisher_id, actor_id, session, "INSUFFICIENT_ROLE_FOR_ROLE_MANAGEMENT"
    )
    member = await publisher_service.get_member(publisher_id, user_id, session)
    await publisher_service.require_manageable(
        publisher_id,
        actor_id,
        PublisherMemberRole(member.role),
        session,
        "INSUFFICIENT_ROLE_FOR_ROLE_MANAGEMENT",
    )
    return member


@router.post(
    "/{publisher_id}/members/{user_id}/permissions/grant",
    response_model=ScopeResponse,
)
async def grant_permissions(
    publisher_id: uuid.UUID,
    user_id: uuid.UUID,
    body: ScopeGrantRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Set the given flags on the member's organization or modpack scope."""
    # Shape check first; nothing is read before the target is well-formed
    target = ScopeTarget.from_ids(body.publisher_id, body.modpack_id)
    member = await _manageable_member(publisher_id, user.id, user_id, session)
    await _check_grant_target(publisher_id, target, session)
    scope = await scope_service.grant_permissions(session, member.id, body.permissions, target)
    return scope_response(scope)


@router.post(
    "/{publisher_id}/members/{user_id}/permissions/revoke",
    response_model=Optional[ScopeResponse],
)
async def revoke_permissions(
    publisher_id: uuid.UUID,
    user_id: uuid.UUID,
    body: ScopeRevokeRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Clear the listed flags. Returns null if the member had no scope for the target."""
    # Shape check first; nothing is read before the target is well-formed
    target = ScopeTarget.from_ids(body.publisher_id, body.modpack_id)
    member = await _manageable_member(publisher_id, user.id, user_id, session)
    await _check_grant_target(publisher_id, target, session)
    scope = await scope_service.revoke_permissions(session, member.id, body.permissions, target)
    return scope_response(scope) if scope else None
