"""create checkpoint tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:12:41.208311
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


attendance_type = sa.Enum('entry', 'exit', name='attendancetype')
authorization_state = sa.Enum('authorized', 'denied', name='authorizationstate')
presence_sync = sa.Enum('applied', 'pending', 'conflict', 'not_required', name='presencesync')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'attendance_records',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('person_dni', sa.String(length=20), nullable=False),
        sa.Column('first_name', sa.String(length=120), nullable=False),
        sa.Column('last_name', sa.String(length=120), nullable=False),
        sa.Column('university_code', sa.String(length=32), nullable=True),
        sa.Column('faculty_code', sa.String(length=20), nullable=False),
        sa.Column('school_code', sa.String(length=20), nullable=False),
        sa.Column('type', attendance_type, nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('entry_method', sa.String(length=20), nullable=False),
        sa.Column('checkpoint', sa.String(length=64), nullable=False),
        sa.Column('guard_id', sa.String(length=64), nullable=False),
        sa.Column('guard_name', sa.String(length=120), nullable=False),
        sa.Column('manual_authorization', sa.Boolean(), nullable=False),
        sa.Column('coordinates', sa.String(length=64), nullable=True),
        sa.Column('location_description', sa.Text(), nullable=True),
        sa.Column('state', authorization_state, nullable=False),
        sa.Column('decision_reason', sa.Text(), nullable=True),
        sa.Column('decision_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('presence_sync', presence_sync, nullable=False),
        sa.Column('presence_sync_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_attendance_records_person_dni', 'attendance_records', ['person_dni'])
    op.create_index('ix_attendance_records_university_code', 'attendance_records', ['university_code'])
    op.create_index('ix_attendance_records_checkpoint', 'attendance_records', ['checkpoint'])
    op.create_index('ix_attendance_records_guard_id', 'attendance_records', ['guard_id'])
    op.create_index('ix_attendance_person_recorded', 'attendance_records', ['person_dni', 'recorded_at'])
    op.create_index('ix_attendance_presence_sync', 'attendance_records', ['presence_sync'])

    op.create_table(
        'presence_records',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('person_dni', sa.String(length=20), nullable=False),
        sa.Column('person_name', sa.String(length=250), nullable=False),
        sa.Column('faculty_code', sa.String(length=20), nullable=True),
        sa.Column('school_code', sa.String(length=20), nullable=True),
        sa.Column('entered_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('entry_checkpoint', sa.String(length=64), nullable=False),
        sa.Column('entry_guard_id', sa.String(length=64), nullable=False),
        sa.Column('entry_attendance_id', sa.String(length=36), nullable=True),
        sa.Column('exited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('exit_checkpoint', sa.String(length=64), nullable=True),
        sa.Column('exit_guard_id', sa.String(length=64), nullable=True),
        sa.Column('exit_attendance_id', sa.String(length=36), nullable=True),
        sa.Column('inside', sa.Boolean(), nullable=False),
        sa.Column('duration_ms', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_presence_records_entered_at', 'presence_records', ['entered_at'])
    op.create_index('ix_presence_records_entry_attendance_id', 'presence_records', ['entry_attendance_id'])
    op.create_index('ix_presence_records_exit_attendance_id', 'presence_records', ['exit_attendance_id'])
    op.create_index('ix_presence_person_inside', 'presence_records', ['person_dni', 'inside'])
    # at most one open presence per person
    op.create_index(
        'uq_presence_person_inside',
        'presence_records',
        ['person_dni'],
        unique=True,
        postgresql_where=sa.text('inside'),
    )

    op.create_table(
        'guard_sessions',
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('guard_id', sa.String(length=64), nullable=False),
        sa.Column('guard_name', sa.String(length=120), nullable=False),
        sa.Column('checkpoint', sa.String(length=64), nullable=False),
        sa.Column('device_info', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_activity', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('forced_by', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('token'),
    )
    op.create_index('ix_guard_sessions_checkpoint', 'guard_sessions', ['checkpoint'])
    op.create_index('ix_guard_sessions_guard_active', 'guard_sessions', ['guard_id', 'is_active'])
    # one active operator per checkpoint
    op.create_index(
        'uq_guard_sessions_checkpoint_active',
        'guard_sessions',
        ['checkpoint'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'manual_decisions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('attendance_id', sa.String(length=36), nullable=True),
        sa.Column('person_dni', sa.String(length=20), nullable=True),
        sa.Column('person_name', sa.String(length=250), nullable=True),
        sa.Column('guard_id', sa.String(length=64), nullable=False),
        sa.Column('guard_name', sa.String(length=120), nullable=True),
        sa.Column('authorized', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('checkpoint', sa.String(length=64), nullable=True),
        sa.Column('access_type', sa.String(length=10), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_manual_decisions_attendance_id', 'manual_decisions', ['attendance_id'])
    op.create_index('ix_manual_decisions_person_dni', 'manual_decisions', ['person_dni'])
    op.create_index('ix_manual_decisions_guard_id', 'manual_decisions', ['guard_id'])
    op.create_index('ix_manual_decisions_decided_at', 'manual_decisions', ['decided_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('manual_decisions')
    op.drop_table('guard_sessions')
    op.drop_table('presence_records')
    op.drop_table('attendance_records')
    presence_sync.drop(op.get_bind(), checkfirst=True)
    authorization_state.drop(op.get_bind(), checkfirst=True)
    attendance_type.drop(op.get_bind(), checkfirst=True)
