"""Initial schema: users, publishers, members, modpacks, scopes, acquisitions, payments

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCOPE_FLAGS = (
    'modpack_view',
    'modpack_modify',
    'modpack_manage_versions',
    'modpack_publish',
    'modpack_delete',
    'modpack_manage_access',
    'publisher_manage_categories_tags',
    'publisher_view_stats',
    'can_create_modpacks',
    'can_edit_modpacks',
    'can_delete_modpacks',
    'can_publish_versions',
    'can_manage_members',
    'can_manage_settings',
)


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='user'),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('twitch_id', sa.String(), nullable=True),
        sa.Column('twitch_access_token', sa.String(), nullable=True),
        sa.Column('twitch_refresh_token', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_twitch_id'), 'users', ['twitch_id'], unique=False)

    op.create_table('publishers',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_publishers_id'), 'publishers', ['id'], unique=False)
    op.create_index(op.f('ix_publishers_name'), 'publishers', ['name'], unique=False)
    op.create_index(op.f('ix_publishers_slug'), 'publishers', ['slug'], unique=True)

    op.create_table('publisher_members',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('publisher_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='member'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['publisher_id'], ['publishers.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('publisher_id', 'user_id', name='uq_publisher_members_publisher_user'),
    )
    op.create_index(op.f('ix_publisher_members_id'), 'publisher_members', ['id'], unique=False)
    op.create_index(op.f('ix_publisher_members_publisher_id'), 'publisher_members', ['publisher_id'], unique=False)
    op.create_index(op.f('ix_publisher_members_user_id'), 'publisher_members', ['user_id'], unique=False)

    op.create_table('modpacks',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('publisher_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('creator_user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('summary', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('acquisition_method', sa.String(), nullable=True, server_default='free'),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('twitch_creator_ids', sa.JSON(), nullable=False, server_default='[]'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['publisher_id'], ['publishers.id']),
        sa.ForeignKeyConstraint(['creator_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('publisher_id', 'slug', name='uq_modpacks_publisher_slug'),
    )
    op.create_index(op.f('ix_modpacks_id'), 'modpacks', ['id'], unique=False)
    op.create_index(op.f('ix_modpacks_publisher_id'), 'modpacks', ['publisher_id'], unique=False)
    op.create_index(op.f('ix_modpacks_slug'), 'modpacks', ['slug'], unique=False)

    op.create_table('scopes',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('publisher_member_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('publisher_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('modpack_id', postgresql.UUID(as_uuid=True), nullable=True),
        *[sa.Column(flag, sa.Boolean(), nullable=False, server_default=sa.false()) for flag in SCOPE_FLAGS],
        *_timestamps(),
        sa.ForeignKeyConstraint(['publisher_member_id'], ['publisher_members.id']),
        sa.ForeignKeyConstraint(['publisher_id'], ['publishers.id']),
        sa.ForeignKeyConstraint(['modpack_id'], ['modpacks.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('(publisher_id IS NULL) <> (modpack_id IS NULL)', name='ck_scopes_single_target'),
        sa.UniqueConstraint('publisher_member_id', 'publisher_id', name='uq_scopes_member_publisher'),
        sa.UniqueConstraint('publisher_member_id', 'modpack_id', name='uq_scopes_member_modpack'),
    )
    op.create_index(op.f('ix_scopes_id'), 'scopes', ['id'], unique=False)
    op.create_index(op.f('ix_scopes_publisher_member_id'), 'scopes', ['publisher_member_id'], unique=False)
    op.create_index(op.f('ix_scopes_publisher_id'), 'scopes', ['publisher_id'], unique=False)
    op.create_index(op.f('ix_scopes_modpack_id'), 'scopes', ['modpack_id'], unique=False)

    op.create_table('modpack_acquisitions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('modpack_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('method', sa.String(), nullable=False),
        sa.Column('transaction_id', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['modpack_id'], ['modpacks.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'modpack_id', name='uq_modpack_acquisitions_user_modpack'),
    )
    op.create_index(op.f('ix_modpack_acquisitions_id'), 'modpack_acquisitions', ['id'], unique=False)
    op.create_index(op.f('ix_modpack_acquisitions_user_id'), 'modpack_acquisitions', ['user_id'], unique=False)
    op.create_index(op.f('ix_modpack_acquisitions_modpack_id'), 'modpack_acquisitions', ['modpack_id'], unique=False)

    op.create_table('payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('modpack_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('gateway', sa.String(), nullable=False, server_default='paypal'),
        sa.Column('external_id', sa.String(), nullable=False),
        sa.Column('approval_url', sa.String(), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('transaction_id', sa.String(), nullable=True),
        sa.Column('commission_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('publisher_amount', sa.Numeric(10, 2), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['modpack_id'], ['modpacks.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)
    op.create_index(op.f('ix_payments_user_id'), 'payments', ['user_id'], unique=False)
    op.create_index(op.f('ix_payments_modpack_id'), 'payments', ['modpack_id'], unique=False)
    op.create_index(op.f('ix_payments_external_id'), 'payments', ['external_id'], unique=True)


def downgrade() -> None:
    op.drop_table('payments')
    op.drop_table('modpack_acquisitions')
    op.drop_table('scopes')
    op.drop_table('modpacks')
    op.drop_table('publisher_members')
    op.drop_table('publishers')
    op.drop_table('users')
