"""
Modpack service: creator-side modpack management guarded by the
permission evaluator, plus lookups used by the public access endpoints.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password
from app.core.config import get_settings
from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.models.modpack import Modpack
from app.services.permissions import PermissionEvaluator, evaluator_for

from modstore_shared.schemas.common import AcquisitionMethod, ModpackStatus, Permission
from modstore_shared.schemas.modpacks import (
    ModpackAccessConfig,
    ModpackCreateRequest,
    ModpackUpdateRequest,
)

log = structlog.get_logger()
settings = get_settings()


def acquisition_method_of(modpack: Modpack) -> AcquisitionMethod:
    """A modpack without a configured method is free."""
    if not modpack.acquisition_method:
        return AcquisitionMethod.FREE
    return AcquisitionMethod(modpack.acquisition_method)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_modpack(
    publisher_id: uuid.UUID, modpack_id: uuid.UUID, session: AsyncSession
) -> Modpack:
    """Get a publisher's modpack; raises 404 if missing or deleted."""
    result = await session.execute(
        select(Modpack).where(
            Modpack.id == modpack_id,
            Modpack.publisher_id == publisher_id,
            Modpack.status != ModpackStatus.DELETED.value,
        )
    )
    modpack = result.scalar_one_or_none()
    if not modpack:
        raise NotFoundError("Modpack not found", code="MODPACK_NOT_FOUND")
    return modpack


async def get_published_modpack(modpack_id: uuid.UUID, session: AsyncSession) -> Modpack:
    """Public lookup: only published modpacks exist for end users."""
    result = await session.execute(
        select(Modpack).where(
            Modpack.id == modpack_id,
            Modpack.status == ModpackStatus.PUBLISHED.value,
        )
    )
    modpack = result.scalar_one_or_none()
    if not modpack:
        raise NotFoundError("Modpack not found", code="MODPACK_NOT_FOUND")
    return modpack


async def get_any_modpack(modpack_id: uuid.UUID, session: AsyncSession) -> Modpack:
    result = await session.execute(select(Modpack).where(Modpack.id == modpack_id))
    modpack = result.scalar_one_or_none()
    if not modpack:
        raise NotFoundError("Modpack not found", code="MODPACK_NOT_FOUND")
    return modpack


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

async def require_view(
    evaluator: PermissionEvaluator, user_id: uuid.UUID, modpack: Modpack
) -> None:
    if not await evaluator.can_view_modpack(
        user_id, modpack.publisher_id, modpack.id, modpack.creator_user_id
    ):
        raise ForbiddenError(
            "Missing permission: modpack_view", code=Permission.MODPACK_VIEW.error_code
        )


async def require_modify(
    evaluator: PermissionEvaluator, user_id: uuid.UUID, modpack: Modpack
) -> None:
    if not await evaluator.can_modify_modpack(
        user_id, modpack.publisher_id, modpack.id, modpack.creator_user_id
    ):
        raise ForbiddenError(
            "Missing permission: modpack_modify", code=Permission.MODPACK_MODIFY.error_code
        )


# ---------------------------------------------------------------------------
# Creator operations
# ---------------------------------------------------------------------------

async def create_modpack(
    publisher_id: uuid.UUID,
    actor_id: uuid.UUID,
    req: ModpackCreateRequest,
    session: AsyncSession,
) -> Modpack:
    """Create a draft modpack authored by the actor."""
    evaluator = evaluator_for(session)
    await evaluator.require_permission(actor_id, publisher_id, Permission.CAN_CREATE_MODPACKS)

    existing = await session.execute(
        select(Modpack).where(Modpack.publisher_id == publisher_id, Modpack.slug == req.slug)
    )
    if existing.scalar_one_or_none():
        raise ConflictError("Modpack slug already taken", code="MODPACK_SLUG_TAKEN")

    modpack = Modpack(
        publisher_id=publisher_id,
        creator_user_id=actor_id,
        name=req.name,
        slug=req.slug,
        summary=req.summary,
        status=ModpackStatus.DRAFT.value,
        acquisition_method=AcquisitionMethod.FREE.value,
    )
    session.add(modpack)
    await session.flush()

    log.info("modpack.created", modpack_id=str(modpack.id), publisher_id=str(publisher_id), creator=str(actor_id))
    return modpack


async def list_visible_modpacks(
    publisher_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> list[Modpack]:
    """Modpacks of the publisher the user may view."""
    evaluator = evaluator_for(session)
    result = await session.execute(
        select(Modpack)
        .where(
            Modpack.publisher_id == publisher_id,
            Modpack.status != ModpackStatus.DELETED.value,
        )
        .order_by(Modpack.created_at)
    )
    visible = []
    for modpack in result.scalars().all():
        if await evaluator.can_view_modpack(
            user_id, publisher_id, modpack.id, modpack.creator_user_id
        ):
            visible.append(modpack)
    return visible


async def update_modpack(
    modpack: Modpack,
    actor_id: uuid.UUID,
    req: ModpackUpdateRequest,
    session: AsyncSession,
) -> Modpack:
    evaluator = evaluator_for(session)
    await require_modify(evaluator, actor_id, modpack)

    if req.status is not None and req.status in (ModpackStatus.PUBLISHED, ModpackStatus.DELETED):
        # Dedicated endpoints carry their own permissions
        raise ConflictError(
            f"Use the dedicated endpoint to set status '{req.status.value}'",
            code="STATUS_CHANGE_NOT_ALLOWED",
        )

    if req.name is not None:
        modpack.name = req.name
    if req.summary is not None:
        modpack.summary = req.summary
    if req.status is not None:
        modpack.status = req.status.value

    modpack.updated_at = datetime.now(timezone.utc)
    session.add(modpack)
    await session.flush()

    log.info("modpack.updated", modpack_id=str(modpack.id), actor=str(actor_id))
    return modpack


async def publish_modpack(
    modpack: Modpack, actor_id: uuid.UUID, session: AsyncSession
) -> Modpack:
    evaluator = evaluator_for(session)
    await evaluator.require_permission(
        actor_id, modpack.publisher_id, Permission.MODPACK_PUBLISH, modpack.id
    )
    modpack.status = ModpackStatus.PUBLISHED.value
    modpack.updated_at = datetime.now(timezone.utc)
    session.add(modpack)
    await session.flush()

    log.info("modpack.published", modpack_id=str(modpack.id), actor=str(actor_id))
    return modpack


async def delete_modpack(
    modpack: Modpack, actor_id: uuid.UUID, session: AsyncSession
) -> None:
    """Soft-delete; acquisitions keep pointing at the row."""
    evaluator = evaluator_for(session)
    await evaluator.require_permission(
        actor_id, modpack.publisher_id, Permission.MODPACK_DELETE, modpack.id
    )
    modpack.status = ModpackStatus.DELETED.value
    modpack.updated_at = datetime.now(timezone.utc)
    session.add(modpack)
    await session.flush()

    log.info("modpack.deleted", modpack_id=str(modpack.id), actor=str(actor_id))


async def configure_access(
    modpack: Modpack,
    actor_id: uuid.UUID,
    config: ModpackAccessConfig,
    session: AsyncSession,
) -> Modpack:
    """Set the acquisition method and keep only the fields it uses."""
    evaluator = evaluator_for(session)
    await evaluator.require_permission(
        actor_id, modpack.publisher_id, Permission.MODPACK_MANAGE_ACCESS, modpack.id
    )

    method = config.acquisition_method
    modpack.acquisition_method = method.value
    modpack.password_hash = hash_password(config.password) if method == AcquisitionMethod.PASSWORD else None
    if method == AcquisitionMethod.PAID:
        modpack.price = config.price
        modpack.currency = (config.currency or settings.default_currency).upper()
    else:
        modpack.price = None
        modpack.currency = None
    modpack.twitch_creator_ids = (
        list(dict.fromkeys(config.twitch_creator_ids))
        if method == AcquisitionMethod.TWITCH_SUB
        else []
    )

    modpack.updated_at = datetime.now(timezone.utc)
    session.add(modpack)
    await session.flush()

    log.info(
        "modpack.access_configured",
        modpack_id=str(modpack.id),
        method=method.value,
        actor=str(actor_id),
    )
    return modpack
