"""processes: valoraciones/procedimientos con código correlativo

Revision ID: 0002_processes
Revises: 0001_initial_schema
Create Date: 2025-07-14
"""
from alembic import op
import sqlalchemy as sa

revision = '0002_processes'
down_revision = '0001_initial_schema'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'processes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('institution_id', sa.Uuid(), sa.ForeignKey('institutions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('code', name='uq_processes_code'),
    )
    op.create_index('ix_processes_institution_id', 'processes', ['institution_id'])
    op.create_index('ix_processes_created_by', 'processes', ['created_by'])

    op.create_table(
        'process_groups',
        sa.Column('process_id', sa.Uuid(), sa.ForeignKey('processes.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('groups.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_index('ix_process_groups_group_id', 'process_groups', ['group_id'])

    op.create_table(
        'process_surveys',
        sa.Column('process_id', sa.Uuid(), sa.ForeignKey('processes.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('survey_id', sa.Uuid(), sa.ForeignKey('surveys.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_index('ix_process_surveys_survey_id', 'process_surveys', ['survey_id'])


def downgrade():
    op.drop_table('process_surveys')
    op.drop_table('process_groups')
    op.drop_table('processes')
