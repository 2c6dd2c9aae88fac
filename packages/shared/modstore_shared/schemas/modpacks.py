"""
Modpack-related Pydantic schemas shared between server and clients.

Covers: creator-side modpack CRUD, acquisition method configuration,
the public access check, acquisition records and payments.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .common import (
    AccessReason,
    AcquisitionMethod,
    AcquisitionStatus,
    ModpackStatus,
    Pagination,
    PaymentStatus,
)


# ---------------------------------------------------------------------------
# Modpacks
# ---------------------------------------------------------------------------

class ModpackCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(
        ...,
        min_length=3,
        max_length=64,
        pattern=r"^[a-z0-9][a-z0-9-]*[a-z0-9]$",
    )
    summary: Optional[str] = Field(default=None, max_length=500)


class ModpackUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    summary: Optional[str] = Field(default=None, max_length=500)
    status: Optional[ModpackStatus] = None


class ModpackAccessConfig(BaseModel):
    """Acquisition configuration for a modpack.

    Only the fields belonging to the selected method are meaningful; the
    rest are ignored and cleared on save.
    """

    acquisition_method: AcquisitionMethod
    password: Optional[str] = Field(default=None, min_length=1, max_length=128)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    twitch_creator_ids: list[str] = []

    @model_validator(mode="after")
    def _require_method_fields(self) -> "ModpackAccessConfig":
        method = self.acquisition_method
        if method == AcquisitionMethod.PASSWORD and not self.password:
            raise ValueError("password is required for password-protected modpacks")
        if method == AcquisitionMethod.PAID and (self.price is None or self.price <= 0):
            raise ValueError("a positive price is required for paid modpacks")
        if method == AcquisitionMethod.TWITCH_SUB and not self.twitch_creator_ids:
            raise ValueError("at least one Twitch channel id is required")
        return self


class ModpackResponse(BaseModel):
    id: uuid.UUID
    publisher_id: uuid.UUID
    creator_user_id: Optional[uuid.UUID] = None
    name: str
    slug: str
    summary: Optional[str] = None
    status: ModpackStatus
    acquisition_method: AcquisitionMethod
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    twitch_creator_ids: list[str] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ModpackListResponse(BaseModel):
    data: list[ModpackResponse]


# ---------------------------------------------------------------------------
# Access gate
# ---------------------------------------------------------------------------

class AccessCheckResponse(BaseModel):
    can_access: bool
    reason: AccessReason
    required_channels: list[str] = []


class AccessInfoResponse(BaseModel):
    acquisition_method: AcquisitionMethod
    requires_auth: bool
    requires_password: bool
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    required_channels: list[str] = []


class AcquireRequest(BaseModel):
    password: Optional[str] = None


class AcquisitionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    modpack_id: uuid.UUID
    method: AcquisitionMethod
    transaction_id: Optional[str] = None
    status: AcquisitionStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AcquisitionListResponse(BaseModel):
    data: list[AcquisitionResponse]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

class PaymentResponse(BaseModel):
    id: uuid.UUID
    modpack_id: uuid.UUID
    gateway: str
    external_id: str
    amount: Decimal
    currency: str
    status: PaymentStatus
    approval_url: Optional[str] = None

    model_config = {"from_attributes": True}


class AcquireResponse(BaseModel):
    granted: bool
    reason: AccessReason
    acquisition: Optional[AcquisitionResponse] = None
    payment: Optional[PaymentResponse] = None
    required_channels: list[str] = []
