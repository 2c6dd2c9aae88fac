"""User model."""

from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    username: str = Field(nullable=False, index=True)
    email: Optional[str] = Field(default=None, unique=True, index=True)
    role: str = Field(default="user", nullable=False)  # user | admin | superadmin | system
    password_hash: Optional[str] = Field(default=None)  # bcrypt hash for email/password login

    # Linked Twitch account, used for subscription-gated modpacks
    twitch_id: Optional[str] = Field(default=None, index=True)
    twitch_access_token: Optional[str] = None
    twitch_refresh_token: Optional[str] = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_column_kwargs={
            "server_default": sa.func.now(),
        },
        sa_type=sa.DateTime(timezone=True),
    )

    @property
    def twitch_linked(self) -> bool:
        return bool(self.twitch_id and self.twitch_access_token)
