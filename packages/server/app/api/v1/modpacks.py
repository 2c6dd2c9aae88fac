"""
Creator-side modpack endpoints (scoped to a publisher).

GET    /api/v1/publishers/{publisher_id}/modpacks                     — List modpacks the caller can view
POST   /api/v1/publishers/{publisher_id}/modpacks                     — Create a draft modpack
GET    /api/v1/publishers/{publisher_id}/modpacks/{modpack_id}        — Get a modpack
PATCH  /api/v1/publishers/{publisher_id}/modpacks/{modpack_id}        — Update name/summary/status
DELETE /api/v1/publishers/{publisher_id}/modpacks/{modpack_id}        — Soft-delete
POST   /api/v1/publishers/{publisher_id}/modpacks/{modpack_id}/publish      — Publish
PUT    /api/v1/publishers/{publisher_id}/modpacks/{modpack_id}/access       — Configure acquisition
GET    /api/v1/publishers/{publisher_id}/modpacks/{modpack_id}/acquisitions — Who acquired it
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.modpack import Modpack
from app.models.user import User
from app.services import acquisitions as acquisition_service
from app.services import modpacks as modpack_service
from app.services import publishers as publisher_service
from app.services.permissions import evaluator_for
from modstore_shared.schemas.common import Permission
from modstore_shared.schemas.modpacks import (
    AcquisitionListResponse,
    AcquisitionResponse,
    ModpackAccessConfig,
    ModpackCreateRequest,
    ModpackListResponse,
    ModpackResponse,
    ModpackUpdateRequest,
)

router = APIRouter()


def modpack_response(modpack: Modpack) -> ModpackResponse:
    return ModpackResponse(
        id=modpack.id,
        publisher_id=modpack.publisher_id,
        creator_user_id=modpack.creator_user_id,
        name=modpack.name,
        slug=modpack.slug,
        summary=modpack.summary,
        status=modpack.status,
        acquisition_method=modpack_service.acquisition_method_of(modpack),
        price=modpack.price,
        currency=modpack.currency,
        twitch_creator_ids=modpack.twitch_creator_ids or [],
        created_at=modpack.created_at,
        updated_at=modpack.updated_at,
    )


@router.get("", response_model=ModpackListResponse)
async def list_modpacks(
    publisher_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await publisher_service.get_publisher(publisher_id, session)
    await publisher_service.require_member(publisher_id, user.id, session)
    modpacks = await modpack_service.list_visible_modpacks(publisher_id, user.id, session)
    return ModpackListResponse(data=[modpack_response(m) for m in modpacks])


@router.post("", response_model=ModpackResponse, status_code=201)
async def create_modpack(
    publisher_id: uuid.UUID,
    body: ModpackCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a draft modpack. Requires can_create_modpacks."""
    await publisher_service.get_publisher(publisher_id, session)
    modpack = await modpack_service.create_modpack(publisher_id, user.id, body, session)
    return modpack_response(modpack)


@router.get("/{modpack_id}", response_model=ModpackResponse)
async def get_modpack(
    publisher_id: uuid.UUID,
    modpack_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    modpack = await modpack_service.get_modpack(publisher_id, modpack_id, session)
    await modpack_service.require_view(evaluator_for(session), user.id, modpack)
    return modpack_response(modpack)


@router.patch("/{modpack_id}", response_model=ModpackResponse)
async def update_modpack(
    publisher_id: uuid.UUID,
    modpack_id: uuid.UUID,
    body: ModpackUpdateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    modpack = await modpack_service.get_modpack(publisher_id, modpack_id, session)
    modpack = await modpack_service.update_modpack(modpack, user.id, body, session)
    return modpack_response(modpack)


@router.delete("/{modpack_id}", status_code=204)
async def delete_modpack(
    publisher_id: uuid.UUID,
    modpack_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    modpack = await modpack_service.get_modpack(publisher_id, modpack_id, session)
    await modpack_service.delete_modpack(modpack, user.id, session)
    return Response(status_code=204)


@router.post("/{modpack_id}/publish", response_model=ModpackResponse)
async def publish_modpack(
    publisher_id: uuid.UUID,
    modpack_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    modpack = await modpack_service.get_modpack(publisher_id, modpack_id, session)
    modpack = await modpack_service.publish_modpack(modpack, user.id, session)
    return modpack_response(modpack)


@router.put("/{modpack_id}/access", response_model=ModpackResponse)
async def configure_access(
    publisher_id: uuid.UUID,
    modpack_id: uuid.UUID,
    body: ModpackAccessConfig,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Set the acquisition method. Requires modpack_manage_access."""
    modpack = await modpack_service.get_modpack(publisher_id, modpack_id, session)
    modpack = await modpack_service.configure_access(modpack, user.id, body, session)
    return modpack_response(modpack)


@router.get("/{modpack_id}/acquisitions", response_model=AcquisitionListResponse)
async def list_modpack_acquisitions(
    publisher_id: uuid.UUID,
    modpack_id: uuid.UUID,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Acquisitions of a modpack. Requires publisher_view_stats."""
    modpack = await modpack_service.get_modpack(publisher_id, modpack_id, session)
    await evaluator_for(session).require_permission(
        user.id, publisher_id, Permission.PUBLISHER_VIEW_STATS, modpack.id
    )
    items, pagination = await acquisition_service.list_modpack_acquisitions(
        session, modpack.id, page, per_page
    )
    return AcquisitionListResponse(
        data=[AcquisitionResponse.model_validate(a) for a in items],
        pagination=pagination,
    )
