"""
Acquisition gate: decides whether a user may access or obtain a modpack.

| Method     | Acquire                                                        |
|------------|----------------------------------------------------------------|
| free       | record an active acquisition                                   |
| paid       | start a gateway payment; the webhook records the acquisition   |
| password   | bcrypt-verify the supplied password, then record               |
| twitch_sub | linked account subscribed to any listed channel, then record   |

Denials are returned as values with a machine-readable reason. Failures of
external collaborators (Twitch, payment gateway) raise UpstreamError
subclasses instead, so an outage is never mistaken for "not allowed".
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import verify_password
from app.core.errors import ConflictError, NotFoundError
from app.models.modpack import Modpack
from app.models.modpack_acquisition import ModpackAcquisition
from app.models.payment import Payment
from app.models.user import User
from app.services.modpacks import acquisition_method_of
from app.services.twitch import TwitchClient

from modstore_shared.schemas.common import (
    AccessReason,
    AcquisitionMethod,
    AcquisitionStatus,
    Pagination,
)

if TYPE_CHECKING:
    from app.services.payments import PaymentService

log = structlog.get_logger()

REQUIREMENT_REASONS = {
    AcquisitionMethod.PASSWORD: AccessReason.PASSWORD_REQUIRED,
    AcquisitionMethod.PAID: AccessReason.PURCHASE_REQUIRED,
    AcquisitionMethod.TWITCH_SUB: AccessReason.TWITCH_SUBSCRIPTION_REQUIRED,
}

# Admin moderation transitions: target status -> allowed current statuses
STATUS_TRANSITIONS: dict[AcquisitionStatus, set[AcquisitionStatus]] = {
    AcquisitionStatus.SUSPENDED: {AcquisitionStatus.ACTIVE},
    AcquisitionStatus.REVOKED: {AcquisitionStatus.ACTIVE, AcquisitionStatus.SUSPENDED},
    AcquisitionStatus.ACTIVE: {AcquisitionStatus.SUSPENDED, AcquisitionStatus.REVOKED},
}


@dataclass
class AccessDecision:
    can_access: bool
    reason: AccessReason
    required_channels: list[str] = field(default_factory=list)


@dataclass
class AcquisitionOutcome:
    granted: bool
    reason: AccessReason
    acquisition: Optional[ModpackAcquisition] = None
    payment: Optional[Payment] = None
    required_channels: list[str] = field(default_factory=list)


def _channels(modpack: Modpack) -> list[str]:
    if acquisition_method_of(modpack) != AcquisitionMethod.TWITCH_SUB:
        return []
    return [str(c) for c in (modpack.twitch_creator_ids or []) if c]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

async def get_acquisition(
    session: AsyncSession, user_id: uuid.UUID, modpack_id: uuid.UUID
) -> Optional[ModpackAcquisition]:
    result = await session.execute(
        select(ModpackAcquisition).where(
            ModpackAcquisition.user_id == user_id,
            ModpackAcquisition.modpack_id == modpack_id,
        )
    )
    return result.scalar_one_or_none()


async def record_acquisition(
    session: AsyncSession,
    user_id: uuid.UUID,
    modpack: Modpack,
    method: AcquisitionMethod,
    transaction_id: Optional[str] = None,
) -> ModpackAcquisition:
    """Create or reactivate the (user, modpack) acquisition.

    Revoked acquisitions stay revoked; only an admin can lift a revocation.
    """
    acquisition = await get_acquisition(session, user_id, modpack.id)
    if acquisition is not None:
        if acquisition.status == AcquisitionStatus.REVOKED.value:
            log.warning(
                "acquisition.revoked_not_reactivated",
                acquisition_id=str(acquisition.id),
                user_id=str(user_id),
                modpack_id=str(modpack.id),
            )
            return acquisition
        previous = acquisition.status
        acquisition.status = AcquisitionStatus.ACTIVE.value
        acquisition.method = method.value
        if transaction_id:
            acquisition.transaction_id = transaction_id
        acquisition.updated_at = datetime.now(timezone.utc)
        session.add(acquisition)
        await session.flush()
        if previous != AcquisitionStatus.ACTIVE.value:
            log.info("acquisition.reactivated", acquisition_id=str(acquisition.id), method=method.value)
        return acquisition

    acquisition = ModpackAcquisition(
        user_id=user_id,
        modpack_id=modpack.id,
        method=method.value,
        transaction_id=transaction_id,
        status=AcquisitionStatus.ACTIVE.value,
    )
    session.add(acquisition)
    await session.flush()

    log.info(
        "acquisition.created",
        acquisition_id=str(acquisition.id),
        user_id=str(user_id),
        modpack_id=str(modpack.id),
        method=method.value,
    )
    return acquisition


async def get_acquisition_by_id(
    session: AsyncSession, acquisition_id: uuid.UUID
) -> ModpackAcquisition:
    result = await session.execute(
        select(ModpackAcquisition).where(ModpackAcquisition.id == acquisition_id)
    )
    acquisition = result.scalar_one_or_none()
    if not acquisition:
        raise NotFoundError("Acquisition not found", code="ACQUISITION_NOT_FOUND")
    return acquisition


async def set_acquisition_status(
    session: AsyncSession,
    acquisition: ModpackAcquisition,
    status: AcquisitionStatus,
    actor_id: Optional[uuid.UUID] = None,
) -> ModpackAcquisition:
    """Admin moderation: suspend, revoke or reactivate."""
    current = AcquisitionStatus(acquisition.status)
    if current not in STATUS_TRANSITIONS[status]:
        raise ConflictError(
            f"Cannot change acquisition from '{current.value}' to '{status.value}'",
            code="INVALID_ACQUISITION_TRANSITION",
        )

    acquisition.status = status.value
    acquisition.updated_at = datetime.now(timezone.utc)
    session.add(acquisition)
    await session.flush()

    log.info(
        "acquisition.status_changed",
        acquisition_id=str(acquisition.id),
        old_status=current.value,
        new_status=status.value,
        actor=str(actor_id) if actor_id else None,
    )
    return acquisition


async def _paginate(session: AsyncSession, where, page: int, per_page: int):
    total = (
        await session.execute(select(func.count()).select_from(ModpackAcquisition).where(*where))
    ).scalar_one()
    result = await session.execute(
        select(ModpackAcquisition)
        .where(*where)
        .order_by(ModpackAcquisition.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    pagination = Pagination(
        page=page,
        per_page=per_page,
        total=total,
        total_pages=math.ceil(total / per_page) if total else 0,
    )
    return list(result.scalars().all()), pagination


async def list_user_acquisitions(
    session: AsyncSession,
    user_id: uuid.UUID,
    page: int = 1,
    per_page: int = 20,
    status: Optional[AcquisitionStatus] = None,
) -> tuple[list[ModpackAcquisition], Pagination]:
    where = [ModpackAcquisition.user_id == user_id]
    if status is not None:
        where.append(ModpackAcquisition.status == status.value)
    return await _paginate(session, where, page, per_page)


async def list_modpack_acquisitions(
    session: AsyncSession,
    modpack_id: uuid.UUID,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[ModpackAcquisition], Pagination]:
    return await _paginate(session, [ModpackAcquisition.modpack_id == modpack_id], page, per_page)


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------

def acquisition_info(modpack: Modpack) -> dict:
    """What a caller needs to satisfy to acquire the modpack."""
    method = acquisition_method_of(modpack)
    return {
        "acquisition_method": method,
        "requires_auth": method != AcquisitionMethod.FREE,
        "requires_password": method == AcquisitionMethod.PASSWORD,
        "price": modpack.price if method == AcquisitionMethod.PAID else None,
        "currency": modpack.currency if method == AcquisitionMethod.PAID else None,
        "required_channels": _channels(modpack),
    }


async def check_access(
    session: AsyncSession,
    user: Optional[User],
    modpack: Modpack,
    twitch: TwitchClient,
) -> AccessDecision:
    """Can this caller use the modpack right now? Anonymous callers are allowed."""
    method = acquisition_method_of(modpack)
    if method == AcquisitionMethod.FREE:
        return AccessDecision(True, AccessReason.FREE)

    channels = _channels(modpack)
    if user is None:
        return AccessDecision(False, AccessReason.AUTH_REQUIRED, channels)

    acquisition = await get_acquisition(session, user.id, modpack.id)
    if acquisition is not None:
        status = AcquisitionStatus(acquisition.status)
        if status == AcquisitionStatus.REVOKED:
            return AccessDecision(False, AccessReason.ACCESS_REVOKED)
        if status == AcquisitionStatus.ACTIVE:
            if (
                acquisition.method == AcquisitionMethod.TWITCH_SUB.value
                and method == AcquisitionMethod.TWITCH_SUB
                and not await twitch.can_user_access_modpack(user, channels)
            ):
                # Subscription lapsed since acquisition
                acquisition.status = AcquisitionStatus.SUSPENDED.value
                acquisition.updated_at = datetime.now(timezone.utc)
                session.add(acquisition)
                await session.flush()
                log.info(
                    "acquisition.suspended_subscription_lapsed",
                    acquisition_id=str(acquisition.id),
                    user_id=str(user.id),
                )
                return AccessDecision(False, AccessReason.TWITCH_SUBSCRIPTION_REQUIRED, channels)
            return AccessDecision(True, AccessReason.ACQUIRED)

    return AccessDecision(False, REQUIREMENT_REASONS[method], channels)


async def acquire(
    session: AsyncSession,
    user: Optional[User],
    modpack: Modpack,
    *,
    password: Optional[str] = None,
    twitch: TwitchClient,
    payments: "PaymentService",
) -> AcquisitionOutcome:
    """Try to obtain the modpack for the user."""
    if user is None:
        return AcquisitionOutcome(False, AccessReason.AUTH_REQUIRED)

    method = acquisition_method_of(modpack)
    existing = await get_acquisition(session, user.id, modpack.id)
    if existing is not None:
        if existing.status == AcquisitionStatus.ACTIVE.value:
            return AcquisitionOutcome(True, AccessReason.ACQUIRED, existing)
        if existing.status == AcquisitionStatus.REVOKED.value:
            return AcquisitionOutcome(False, AccessReason.ACCESS_REVOKED, existing)

    if method == AcquisitionMethod.PASSWORD:
        if not password:
            return AcquisitionOutcome(False, AccessReason.PASSWORD_REQUIRED)
        if not modpack.password_hash or not verify_password(password, modpack.password_hash):
            log.info("acquisition.invalid_password", user_id=str(user.id), modpack_id=str(modpack.id))
            return AcquisitionOutcome(False, AccessReason.INVALID_PASSWORD)

    elif method == AcquisitionMethod.TWITCH_SUB:
        channels = _channels(modpack)
        if not user.twitch_linked:
            return AcquisitionOutcome(False, AccessReason.TWITCH_NOT_LINKED, required_channels=channels)
        if not await twitch.can_user_access_modpack(user, channels):
            return AcquisitionOutcome(
                False, AccessReason.TWITCH_SUBSCRIPTION_REQUIRED, required_channels=channels
            )

    elif method == AcquisitionMethod.PAID:
        payment = await payments.create_payment(session, user, modpack)
        return AcquisitionOutcome(False, AccessReason.PAYMENT_REQUIRED, existing, payment)

    acquisition = await record_acquisition(session, user.id, modpack, method)
    return AcquisitionOutcome(True, AccessReason.ACQUIRED, acquisition)
