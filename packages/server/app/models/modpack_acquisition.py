"""A user's right to a modpack."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class ModpackAcquisition(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "modpack_acquisitions"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "modpack_id", name="uq_modpack_acquisitions_user_modpack"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    modpack_id: uuid.UUID = Field(foreign_key="modpacks.id", nullable=False, index=True)
    method: str = Field(nullable=False)  # snapshot of the modpack's method at grant time
    transaction_id: Optional[str] = None
    status: str = Field(default="active", nullable=False)  # active | suspended | revoked
