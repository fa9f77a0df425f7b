"""create external visits

Revision ID: 8b42e0c5d7a3
Revises: 3f1c9a7d2b10
Create Date: 2026-10-19 16:40:05.517902
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '8b42e0c5d7a3'
down_revision: Union[str, None] = '3f1c9a7d2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# both types already exist from the first revision
attendance_type = postgresql.ENUM('entry', 'exit', name='attendancetype', create_type=False)
authorization_state = postgresql.ENUM('authorized', 'denied', name='authorizationstate', create_type=False)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'external_visits',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('full_name', sa.String(length=250), nullable=False),
        sa.Column('dni', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('type', attendance_type, nullable=False),
        sa.Column('state', authorization_state, nullable=False),
        sa.Column('location_description', sa.Text(), nullable=True),
        sa.Column('guard_id', sa.String(length=64), nullable=False),
        sa.Column('guard_name', sa.String(length=120), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_external_visits_dni'), 'external_visits', ['dni'], unique=False)
    op.create_index(op.f('ix_external_visits_guard_id'), 'external_visits', ['guard_id'], unique=False)
    op.create_index(op.f('ix_external_visits_recorded_at'), 'external_visits', ['recorded_at'], unique=False)
    op.create_index('ix_external_visits_dni_recorded', 'external_visits', ['dni', 'recorded_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_external_visits_dni_recorded', table_name='external_visits')
    op.drop_index(op.f('ix_external_visits_recorded_at'), table_name='external_visits')
    op.drop_index(op.f('ix_external_visits_guard_id'), table_name='external_visits')
    op.drop_index(op.f('ix_external_visits_dni'), table_name='external_visits')
    op.drop_table('external_visits')
