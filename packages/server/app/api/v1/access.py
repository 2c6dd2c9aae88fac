"""
Public modpack access endpoints.

GET  /api/v1/modpacks/{modpack_id}/access       — Can the caller use this modpack? (anonymous ok)
GET  /api/v1/modpacks/{modpack_id}/access-info  — What acquiring it requires (anonymous ok)
POST /api/v1/modpacks/{modpack_id}/acquire      — Obtain the modpack
GET  /api/v1/me/acquisitions                    — The caller's acquisitions
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, get_optional_user
from app.core.clients import get_payment_service, get_twitch_client
from app.core.database import get_session
from app.models.user import User
from app.services import acquisitions as acquisition_service
from app.services import modpacks as modpack_service
from app.services.payments import PaymentService
from app.services.twitch import TwitchClient
from modstore_shared.schemas.common import AcquisitionStatus
from modstore_shared.schemas.modpacks import (
    AccessCheckResponse,
    AccessInfoResponse,
    AcquireRequest,
    AcquireResponse,
    AcquisitionListResponse,
    AcquisitionResponse,
    PaymentResponse,
)

log = structlog.get_logger()
router = APIRouter()


@router.get("/modpacks/{modpack_id}/access", response_model=AccessCheckResponse)
async def check_access(
    modpack_id: uuid.UUID,
    user: Optional[User] = Depends(get_optional_user),
    twitch: TwitchClient = Depends(get_twitch_client),
    session: AsyncSession = Depends(get_session),
):
    modpack = await modpack_service.get_published_modpack(modpack_id, session)
    decision = await acquisition_service.check_access(session, user, modpack, twitch)
    return AccessCheckResponse(
        can_access=decision.can_access,
        reason=decision.reason,
        required_channels=decision.required_channels,
    )


@router.get("/modpacks/{modpack_id}/access-info", response_model=AccessInfoResponse)
async def access_info(
    modpack_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    modpack = await modpack_service.get_published_modpack(modpack_id, session)
    return AccessInfoResponse(**acquisition_service.acquisition_info(modpack))


@router.post("/modpacks/{modpack_id}/acquire", response_model=AcquireResponse)
async def acquire_modpack(
    modpack_id: uuid.UUID,
    body: Optional[AcquireRequest] = Body(default=None),
    user: Optional[User] = Depends(get_optional_user),
    twitch: TwitchClient = Depends(get_twitch_client),
    payments: PaymentService = Depends(get_payment_service),
    session: AsyncSession = Depends(get_session),
):
    """Attempt to acquire. Denials come back as granted=false with a reason."""
    modpack = await modpack_service.get_published_modpack(modpack_id, session)
    outcome = await acquisition_service.acquire(
        session,
        user,
        modpack,
        password=body.password if body else None,
        twitch=twitch,
        payments=payments,
    )
    log.info(
        "acquisition.attempt",
        modpack_id=str(modpack_id),
        granted=outcome.granted,
        reason=outcome.reason.value,
    )
    return AcquireResponse(
        granted=outcome.granted,
        reason=outcome.reason,
        acquisition=(
            AcquisitionResponse.model_validate(outcome.acquisition)
            if outcome.acquisition
            else None
        ),
        payment=PaymentResponse.model_validate(outcome.payment) if outcome.payment else None,
        required_channels=outcome.required_channels,
    )


@router.get("/me/acquisitions", response_model=AcquisitionListResponse)
async def list_my_acquisitions(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: Optional[AcquisitionStatus] = Query(None),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    items, pagination = await acquisition_service.list_user_acquisitions(
        session, user.id, page, per_page, status
    )
    return AcquisitionListResponse(
        data=[AcquisitionResponse.model_validate(a) for a in items],
        pagination=pagination,
    )
