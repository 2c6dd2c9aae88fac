"""
Publisher-related Pydantic schemas shared between server and clients.

Covers: publisher CRUD, team membership, scope grant/revoke requests
and the permission view of a member.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .common import Permission, PublisherMemberRole


# ---------------------------------------------------------------------------
# Publishers
# ---------------------------------------------------------------------------

class PublisherCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=r"^[a-z0-9][a-z0-9-]*[a-z0-9]$",
        description="URL-safe slug (lowercase alphanumeric + hyphens)",
    )
    description: Optional[str] = Field(default=None, max_length=2000)


class PublisherResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    verified: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PublisherListItem(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    role: PublisherMemberRole


class PublisherListResponse(BaseModel):
    data: list[PublisherListItem]


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class MemberAddRequest(BaseModel):
    user_id: uuid.UUID
    role: PublisherMemberRole = PublisherMemberRole.MEMBER


class MemberRoleUpdateRequest(BaseModel):
    role: PublisherMemberRole


class MemberResponse(BaseModel):
    id: uuid.UUID
    publisher_id: uuid.UUID
    user_id: uuid.UUID
    role: PublisherMemberRole
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MemberListResponse(BaseModel):
    data: list[MemberResponse]


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------

class ScopeTargetFields(BaseModel):
    """Exactly one of publisher_id / modpack_id must be set.

    The check itself lives in ScopeTarget.from_ids so that the same error
    code is produced for API and service callers.
    """

    publisher_id: Optional[uuid.UUID] = None
    modpack_id: Optional[uuid.UUID] = None


class ScopeGrantRequest(ScopeTargetFields):
    permissions: dict[Permission, bool] = Field(..., min_length=1)


class ScopeRevokeRequest(ScopeTargetFields):
    permissions: list[Permission] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _dedupe(self) -> "ScopeRevokeRequest":
        self.permissions = list(dict.fromkeys(self.permissions))
        return self


class ScopeResponse(BaseModel):
    id: uuid.UUID
    publisher_member_id: uuid.UUID
    publisher_id: Optional[uuid.UUID] = None
    modpack_id: Optional[uuid.UUID] = None
    permissions: dict[Permission, bool]


class MemberPermissionsResponse(BaseModel):
    user_id: uuid.UUID
    publisher_id: uuid.UUID
    role: PublisherMemberRole
    organization_scope: Optional[ScopeResponse] = None
    modpack_scopes: list[ScopeResponse] = []
