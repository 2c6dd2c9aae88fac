"""
Site-admin acquisition moderation.

POST /api/v1/admin/acquisitions/{acquisition_id}/suspend    — Suspend an active acquisition
POST /api/v1/admin/acquisitions/{acquisition_id}/revoke     — Revoke permanently
POST /api/v1/admin/acquisitions/{acquisition_id}/reactivate — Lift a suspension or revocation
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_site_admin
from app.core.database import get_session
from app.models.user import User
from app.services import acquisitions as acquisition_service
from modstore_shared.schemas.common import AcquisitionStatus
from modstore_shared.schemas.modpacks import AcquisitionResponse

router = APIRouter()

async def _moderate(
    acquisition_id: uuid.UUID,
    status: AcquisitionStatus,
    admin: User,
    session: AsyncSession,
) -> AcquisitionResponse:
    acquisition = await acquisition_service.get_acquisition_by_id(session, acquisition_id)
    acquisition = await acquisition_service.set_acquisition_status(
        session, acquisition, status, actor_id=admin.id
    )
    return AcquisitionResponse.model_validate(acquisition)


@router.post("/acquisitions/{acquisition_id}/suspend", response_model=AcquisitionResponse)
async def suspend_acquisition(
    acquisition_id: uuid.UUID,
    admin: User = Depends(require_site_admin),
    session: AsyncSession = Depends(get_session),
):
    return await _moderate(acquisition_id, AcquisitionStatus.SUSPENDED, admin, session)


@router.post("/acquisitions/{acquisition_id}/revoke", response_model=AcquisitionResponse)
async def revoke_acquisition(
    acquisition_id: uuid.UUID,
    admin: User = Depends(require_site_admin),
    session: AsyncSession = Depends(get_session),
):
    return await _moderate(acquisition_id, AcquisitionStatus.REVOKED, admin, session)


@router.post("/acquisitions/{acquisition_id}/reactivate", response_model=AcquisitionResponse)
async def reactivate_acquisition(
    acquisition_id: uuid.UUID,
    admin: User = Depends(require_site_admin),
    session: AsyncSession = Depends(get_session),
):
    return await _moderate(acquisition_id, AcquisitionStatus.ACTIVE, admin, session)
