"""Modpack model (only the fields the access layer needs)."""

from decimal import Decimal
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Modpack(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "modpacks"
    __table_args__ = (
        sa.UniqueConstraint("publisher_id", "slug", name="uq_modpacks_publisher_slug"),
    )

    publisher_id: uuid.UUID = Field(foreign_key="publishers.id", nullable=False, index=True)
    creator_user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    name: str = Field(nullable=False)
    slug: str = Field(nullable=False, index=True)
    summary: Optional[str] = None
    status: str = Field(default="draft", nullable=False)  # draft | published | archived | deleted

    # Acquisition
    acquisition_method: Optional[str] = Field(default="free")  # free | paid | password | twitch_sub
    password_hash: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(default=None, max_length=3)
    twitch_creator_ids: list = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
