"""initial schema: users, institutions, groups, surveys, assignments, answers

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-06-02
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _ts(name, nullable=False, default=True):
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.text('CURRENT_TIMESTAMP') if default else None,
    )


def upgrade():
    op.create_table(
        'institutions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('owner_id', sa.Uuid(), nullable=True),
        _ts('created_at'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('identification', sa.String(50), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('role', sa.String(32), nullable=False, server_default='STUDENT'),
        sa.Column('institution_id', sa.Uuid(), sa.ForeignKey('institutions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='activo'),
        _ts('created_at'),
        sa.Column('reset_token_hash', sa.String(64), nullable=True),
        _ts('reset_token_expires_at', nullable=True, default=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_institution_id', 'users', ['institution_id'])
    op.create_index('ix_users_reset_token_hash', 'users', ['reset_token_hash'])

    with op.batch_alter_table('institutions') as batch:
        batch.create_foreign_key(
            'fk_institutions_owner_id_users', 'users', ['owner_id'], ['id'], ondelete='SET NULL'
        )

    op.create_table(
        'groups',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('invitation_code', sa.String(16), nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('institution_id', sa.Uuid(), sa.ForeignKey('institutions.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_groups_invitation_code', 'groups', ['invitation_code'], unique=True)
    op.create_index('ix_groups_created_by', 'groups', ['created_by'])
    op.create_index('ix_groups_institution_id', 'groups', ['institution_id'])

    op.create_table(
        'group_members',
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('groups.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        _ts('joined_at'),
    )
    op.create_index('ix_group_members_user_id', 'group_members', ['user_id'])

    op.create_table(
        'user_deactivated_groups',
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('groups.id', ondelete='CASCADE'), primary_key=True),
        _ts('deactivated_at'),
    )

    op.create_table(
        'surveys',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('institution_id', sa.Uuid(), sa.ForeignKey('institutions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_surveys_institution_id', 'surveys', ['institution_id'])

    op.create_table(
        'group_surveys',
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('groups.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('survey_id', sa.Uuid(), sa.ForeignKey('surveys.id', ondelete='CASCADE'), primary_key=True),
        _ts('linked_at'),
    )
    op.create_index('ix_group_surveys_survey_id', 'group_surveys', ['survey_id'])

    op.create_table(
        'questions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('survey_id', sa.Uuid(), sa.ForeignKey('surveys.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('options', JSON, nullable=False),
        _ts('created_at'),
    )
    op.create_index('ix_questions_survey_id', 'questions', ['survey_id'])

    op.create_table(
        'survey_assignments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('survey_id', sa.Uuid(), sa.ForeignKey('surveys.id', ondelete='CASCADE'), nullable=False),
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('groups.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='PENDING'),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        _ts('created_at'),
        _ts('completed_at', nullable=True, default=False),
        sa.UniqueConstraint('user_id', 'survey_id', name='uq_assignment_user_survey'),
    )
    op.create_index('ix_survey_assignments_user_id', 'survey_assignments', ['user_id'])
    op.create_index('ix_survey_assignments_survey_id', 'survey_assignments', ['survey_id'])
    op.create_index('ix_survey_assignments_group_id', 'survey_assignments', ['group_id'])
    op.create_index('ix_survey_assignments_status', 'survey_assignments', ['status'])

    op.create_table(
        'answers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', sa.Uuid(), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('options', JSON, nullable=True),
        _ts('created_at'),
        sa.UniqueConstraint('user_id', 'question_id', name='uq_answer_user_question'),
    )
    op.create_index('ix_answers_user_id', 'answers', ['user_id'])
    op.create_index('ix_answers_question_id', 'answers', ['question_id'])
    op.create_index('ix_answers_created_at', 'answers', ['created_at'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('payload', JSON, nullable=True),
        sa.Column('ip', sa.String(64), nullable=True),
        sa.Column('ua', sa.Text(), nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('answers')
    op.drop_table('survey_assignments')
    op.drop_table('questions')
    op.drop_table('group_surveys')
    op.drop_table('surveys')
    op.drop_table('user_deactivated_groups')
    op.drop_table('group_members')
    op.drop_table('groups')
    with op.batch_alter_table('institutions') as batch:
        batch.drop_constraint('fk_institutions_owner_id_users', type_='foreignkey')
    op.drop_table('users')
    op.drop_table('institutions')
