"""Granular permission scope for a publisher member.

A scope row targets either the whole publisher (publisher_id set) or a
single modpack (modpack_id set), never both.
"""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


def _flag():
    return Field(default=False, nullable=False, sa_column_kwargs={"server_default": sa.false()})


class Scope(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "scopes"
    __table_args__ = (
        sa.CheckConstraint(
            "(publisher_id IS NULL) <> (modpack_id IS NULL)",
            name="ck_scopes_single_target",
        ),
        sa.UniqueConstraint("publisher_member_id", "publisher_id", name="uq_scopes_member_publisher"),
        sa.UniqueConstraint("publisher_member_id", "modpack_id", name="uq_scopes_member_modpack"),
    )

    publisher_member_id: uuid.UUID = Field(
        foreign_key="publisher_members.id", nullable=False, index=True
    )
    publisher_id: Optional[uuid.UUID] = Field(default=None, foreign_key="publishers.id", index=True)
    modpack_id: Optional[uuid.UUID] = Field(default=None, foreign_key="modpacks.id", index=True)

    modpack_view: bool = _flag()
    modpack_modify: bool = _flag()
    modpack_manage_versions: bool = _flag()
    modpack_publish: bool = _flag()
    modpack_delete: bool = _flag()
    modpack_manage_access: bool = _flag()
    publisher_manage_categories_tags: bool = _flag()
    publisher_view_stats: bool = _flag()

    # Legacy flags
    can_create_modpacks: bool = _flag()
    can_edit_modpacks: bool = _flag()
    can_delete_modpacks: bool = _flag()
    can_publish_versions: bool = _flag()
    can_manage_members: bool = _flag()
    can_manage_settings: bool = _flag()
