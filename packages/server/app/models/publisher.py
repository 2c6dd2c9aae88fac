"""Publisher (creator organization) model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Publisher(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "publishers"

    name: str = Field(nullable=False, index=True)
    slug: str = Field(unique=True, nullable=False, index=True)
    description: Optional[str] = None
    verified: bool = Field(default=False, nullable=False)
