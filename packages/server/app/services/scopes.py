"""
Scope service: grant and revoke granular permissions for a publisher member.

Grants upsert the (member, target) row and touch only the flags named in
the request. Both operations run inside the caller's session transaction;
the request commits them together with any other writes.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete
from sqlmodel import select

from app.models.scope import Scope
from app.services.permissions import (
    ModpackTarget,
    OrganizationTarget,
    ScopeTarget,
    scope_filter,
)

from modstore_shared.schemas.common import Permission, canonical_permission

log = structlog.get_logger()


async def _find_scope(
    session: AsyncSession, publisher_member_id: uuid.UUID, target: ScopeTarget
) -> Optional[Scope]:
    result = await session.execute(
        select(Scope).where(
            Scope.publisher_member_id == publisher_member_id,
            scope_filter(target),
        )
    )
    return result.scalar_one_or_none()


def _target_fields(target: ScopeTarget) -> dict:
    if isinstance(target, OrganizationTarget):
        return {"publisher_id": target.publisher_id, "modpack_id": None}
    if isinstance(target, ModpackTarget):
        return {"publisher_id": None, "modpack_id": target.modpack_id}
    raise TypeError(f"Unknown scope target: {target!r}")


async def grant_permissions(
    session: AsyncSession,
    publisher_member_id: uuid.UUID,
    permissions: Mapping[Permission, bool],
    target: ScopeTarget,
) -> Scope:
    """Create or update the member's scope for target with the given flags."""
    scope = await _find_scope(session, publisher_member_id, target)
    if scope is None:
        scope = Scope(publisher_member_id=publisher_member_id, **_target_fields(target))
        session.add(scope)

    for permission, value in permissions.items():
        setattr(scope, canonical_permission(Permission(permission)).value, bool(value))

    session.add(scope)
    await session.flush()

    log.info(
        "scope.granted",
        member_id=str(publisher_member_id),
        scope_id=str(scope.id),
        target=type(target).__name__,
        permissions={Permission(p).value: bool(v) for p, v in permissions.items()},
    )
    return scope


async def revoke_permissions(
    session: AsyncSession,
    publisher_member_id: uuid.UUID,
    permissions: Iterable[Permission],
    target: ScopeTarget,
) -> Optional[Scope]:
    """Set the listed flags to false. No scope for the target is a no-op."""
    scope = await _find_scope(session, publisher_member_id, target)
    if scope is None:
        return None

    revoked = [canonical_permission(Permission(p)) for p in permissions]
    for permission in revoked:
        setattr(scope, permission.value, False)

    session.add(scope)
    await session.flush()

    log.info(
        "scope.revoked",
        member_id=str(publisher_member_id),
        scope_id=str(scope.id),
        permissions=[p.value for p in revoked],
    )
    return scope


async def get_member_scopes(
    session: AsyncSession, publisher_member_id: uuid.UUID
) -> list[Scope]:
    result = await session.execute(
        select(Scope).where(Scope.publisher_member_id == publisher_member_id)
    )
    return list(result.scalars().all())


async def delete_member_scopes(
    session: AsyncSession, publisher_member_id: uuid.UUID
) -> None:
    await session.execute(
        delete(Scope).where(Scope.publisher_member_id == publisher_member_id)
    )
