"""Backfill granular scope flags from their legacy equivalents

Copies can_edit_modpacks -> modpack_modify, can_delete_modpacks ->
modpack_delete and can_publish_versions -> modpack_publish for rows
written before the granular flags existed. Granular flags that are
already true are left untouched.

Revision ID: 0002_backfill_granular_scope_flags
Revises: 0001_initial_schema
Create Date: 2026-10-17 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0002_backfill_granular_scope_flags'
down_revision: Union[str, None] = '0001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEGACY_TO_GRANULAR = {
    'can_edit_modpacks': 'modpack_modify',
    'can_delete_modpacks': 'modpack_delete',
    'can_publish_versions': 'modpack_publish',
}


def upgrade() -> None:
    scopes = sa.table(
        'scopes',
        *[sa.column(name, sa.Boolean()) for pair in LEGACY_TO_GRANULAR.items() for name in pair],
    )
    for legacy, granular in LEGACY_TO_GRANULAR.items():
        op.execute(
            scopes.update()
            .where(scopes.c[legacy] == sa.true())
            .where(scopes.c[granular] == sa.false())
            .values({granular: sa.true()})
        )


def downgrade() -> None:
    # One-way data migration; legacy columns were never modified
    pass
