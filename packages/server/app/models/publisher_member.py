"""Publisher membership: one role per (publisher, user)."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class PublisherMember(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "publisher_members"
    __table_args__ = (
        sa.UniqueConstraint("publisher_id", "user_id", name="uq_publisher_members_publisher_user"),
    )

    publisher_id: uuid.UUID = Field(foreign_key="publishers.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(nullable=False, default="member")  # owner | admin | member
