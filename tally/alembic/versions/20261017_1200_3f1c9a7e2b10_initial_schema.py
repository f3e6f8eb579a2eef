"""initial_schema

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c9a7e2b10'
down_revision = None
branch_labels = None
depends_on = None


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'organizations',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('owner_id', sa.TEXT(), nullable=False),
        _ts('created_at'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('name', sa.TEXT(), nullable=True),
        sa.Column('email', sa.TEXT(), nullable=False, unique=True),
        sa.Column('password_hash', sa.TEXT(), nullable=False),
        sa.Column('organization_id', sa.TEXT(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('org_role', sa.TEXT(), nullable=False, server_default='MEMBER'),
        sa.Column('reset_token', sa.TEXT(), nullable=True, unique=True),
        _ts('reset_token_expires_at', nullable=True),
        _ts('created_at'),
    )
    op.create_index('idx_users_organization', 'users', ['organization_id'])

    op.create_table(
        'org_invitations',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('email', sa.TEXT(), nullable=False),
        sa.Column('role', sa.TEXT(), nullable=False, server_default='MEMBER'),
        sa.Column('token', sa.TEXT(), nullable=False, unique=True),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='PENDING'),
        _ts('expires_at'),
        sa.Column('organization_id', sa.TEXT(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('sender_id', sa.TEXT(), nullable=False),
        _ts('created_at'),
    )
    op.create_index('idx_org_invitations_org_status', 'org_invitations', ['organization_id', 'status'])
    op.create_index('idx_org_invitations_email', 'org_invitations', ['email'])

    op.create_table(
        'auth_sessions',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('token_hash', sa.TEXT(), nullable=False, unique=True),
        sa.Column('pepper_version', sa.BIGINT(), nullable=False, server_default='1'),
        _ts('created_at'),
        _ts('expires_at'),
        _ts('revoked_at', nullable=True),
        _ts('last_used_at', nullable=True),
    )
    op.create_index('idx_auth_sessions_user', 'auth_sessions', ['user_id'])

    op.create_table(
        'projects',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('color', sa.TEXT(), nullable=False, server_default='#3B82F6'),
        sa.Column('archived', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column('hourly_rate', sa.FLOAT(), nullable=True),
        sa.Column('owner_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('organization_id', sa.TEXT(), sa.ForeignKey('organizations.id'), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('idx_projects_owner', 'projects', ['owner_id'])
    op.create_index('idx_projects_organization', 'projects', ['organization_id'])

    op.create_table(
        'project_members',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('project_id', sa.TEXT(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('role', sa.TEXT(), nullable=False, server_default='MEMBER'),
        _ts('created_at'),
        sa.UniqueConstraint('user_id', 'project_id', name='uq_project_members_user_project'),
    )

    op.create_table(
        'tasks',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('completed', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column('project_id', sa.TEXT(), sa.ForeignKey('projects.id'), nullable=False),
        _ts('created_at'),
    )

    op.create_table(
        'invitations',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('email', sa.TEXT(), nullable=False),
        sa.Column('token', sa.TEXT(), nullable=False, unique=True),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='PENDING'),
        _ts('expires_at'),
        sa.Column('project_id', sa.TEXT(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('sender_id', sa.TEXT(), nullable=False),
        _ts('created_at'),
    )

    op.create_table(
        'favorite_projects',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('project_id', sa.TEXT(), sa.ForeignKey('projects.id'), nullable=False),
        _ts('created_at'),
        sa.UniqueConstraint('user_id', 'project_id', name='uq_favorite_projects_user_project'),
    )

    op.create_table(
        'time_entries',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('project_id', sa.TEXT(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('task_id', sa.TEXT(), sa.ForeignKey('tasks.id', ondelete='SET NULL'), nullable=True),
        _ts('start_time'),
        _ts('end_time', nullable=True),
        sa.Column('duration', sa.BIGINT(), nullable=True),
        sa.Column('billable', sa.BOOLEAN(), nullable=False, server_default=sa.true()),
        sa.Column('activity', sa.TEXT(), nullable=True),
        sa.Column('subtask', sa.TEXT(), nullable=True),
        sa.Column('notes', sa.TEXT(), nullable=True),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('idx_time_entries_user_start', 'time_entries', ['user_id', 'start_time'])
    op.create_index('idx_time_entries_project', 'time_entries', ['project_id'])
    # At most one running timer per user
    op.create_index(
        'uq_time_entries_running_timer',
        'time_entries',
        ['user_id'],
        unique=True,
        sqlite_where=sa.text('end_time IS NULL'),
        postgresql_where=sa.text('end_time IS NULL'),
    )

    op.create_table(
        'entry_comments',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('content', sa.TEXT(), nullable=False),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('entry_id', sa.TEXT(), sa.ForeignKey('time_entries.id'), nullable=False),
        _ts('created_at'),
    )
    op.create_index('idx_entry_comments_entry', 'entry_comments', ['entry_id'])

    op.create_table(
        'time_templates',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('project_id', sa.TEXT(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('activity', sa.TEXT(), nullable=True),
        sa.Column('subtask', sa.TEXT(), nullable=True),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('duration', sa.BIGINT(), nullable=False),
        sa.Column('billable', sa.BOOLEAN(), nullable=False, server_default=sa.true()),
        sa.Column('is_default', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        _ts('created_at'),
    )
    op.create_index('idx_time_templates_user', 'time_templates', ['user_id'])

    op.create_table(
        'recurring_entries',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('project_id', sa.TEXT(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('activity', sa.TEXT(), nullable=True),
        sa.Column('subtask', sa.TEXT(), nullable=True),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('duration', sa.BIGINT(), nullable=False),
        sa.Column('billable', sa.BOOLEAN(), nullable=False, server_default=sa.true()),
        sa.Column('frequency', sa.TEXT(), nullable=False),
        sa.Column('days_of_week', sa.JSON(), nullable=False),
        sa.Column('day_of_month', sa.BIGINT(), nullable=True),
        sa.Column('start_date', sa.DATE(), nullable=False),
        sa.Column('end_date', sa.DATE(), nullable=True),
        sa.Column('active', sa.BOOLEAN(), nullable=False, server_default=sa.true()),
        sa.Column('last_run', sa.DATE(), nullable=True),
        _ts('created_at'),
    )
    op.create_index('idx_recurring_entries_user_active', 'recurring_entries', ['user_id', 'active'])


def downgrade() -> None:
    op.drop_table('recurring_entries')
    op.drop_table('time_templates')
    op.drop_table('entry_comments')
    op.drop_index('uq_time_entries_running_timer', table_name='time_entries')
    op.drop_table('time_entries')
    op.drop_table('favorite_projects')
    op.drop_table('invitations')
    op.drop_table('tasks')
    op.drop_table('project_members')
    op.drop_table('projects')
    op.drop_table('auth_sessions')
    op.drop_table('org_invitations')
    op.drop_table('users')
    op.drop_table('organizations')
