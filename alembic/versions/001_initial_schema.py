"""Initial schema - users, student profiles, submissions, analysis results, admin logs, analytics, email notifications

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enum columns are stored as their string values (see database.models.EnumValue)
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('open_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('login_method', sa.String(length=64), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('last_signed_in', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_open_id', 'users', ['open_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('idx_user_role', 'users', ['role'])

    op.create_table(
        'student_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('middle_name', sa.String(length=100), nullable=True),
        sa.Column('surname', sa.String(length=100), nullable=False),
        sa.Column('student_id', sa.String(length=50), nullable=False),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('course', sa.String(length=150), nullable=True),
        sa.Column('year_level', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index('ix_student_profiles_id', 'student_profiles', ['id'])
    op.create_index('ix_student_profiles_student_id', 'student_profiles', ['student_id'], unique=True)
    op.create_index('idx_profile_course', 'student_profiles', ['course'])
    op.create_index('idx_profile_year_level', 'student_profiles', ['year_level'])

    op.create_table(
        'submissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('image_key', sa.String(length=255), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('mime_type', sa.String(length=50), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('image_quality', sa.String(length=32), nullable=True, server_default='good'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_submissions_id', 'submissions', ['id'])
    op.create_index('idx_submission_user', 'submissions', ['user_id'])
    op.create_index('idx_submission_status', 'submissions', ['status'])
    op.create_index('idx_submission_created', 'submissions', ['created_at'])

    op.create_table(
        'analysis_results',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('detected_issues', sa.JSON(), nullable=False),
        sa.Column('overall_severity', sa.String(length=32), nullable=False),
        sa.Column('recommendations', sa.JSON(), nullable=False),
        sa.Column('disclaimer', sa.Text(), nullable=False),
        sa.Column('ml_model_version', sa.String(length=50), nullable=False),
        sa.Column('processing_time', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('submission_id')
    )
    op.create_index('ix_analysis_results_id', 'analysis_results', ['id'])
    op.create_index('idx_analysis_user', 'analysis_results', ['user_id'])
    op.create_index('idx_analysis_severity', 'analysis_results', ['overall_severity'])
    op.create_index('idx_analysis_created', 'analysis_results', ['created_at'])

    op.create_table(
        'admin_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('target_user_id', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['admin_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['target_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_admin_logs_id', 'admin_logs', ['id'])
    op.create_index('ix_admin_logs_created_at', 'admin_logs', ['created_at'])
    op.create_index('idx_admin_log_admin', 'admin_logs', ['admin_id'])
    op.create_index('idx_admin_log_action', 'admin_logs', ['action'])

    op.create_table(
        'analytics_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_analytics_events_id', 'analytics_events', ['id'])
    op.create_index('ix_analytics_events_created_at', 'analytics_events', ['created_at'])
    op.create_index('idx_analytics_event_type', 'analytics_events', ['event_type'])

    op.create_table(
        'email_notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=True),
        sa.Column('notification_type', sa.String(length=32), nullable=False),
        sa.Column('recipient_email', sa.String(length=320), nullable=False),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_email_notifications_id', 'email_notifications', ['id'])
    op.create_index('idx_email_status', 'email_notifications', ['status'])
    op.create_index('idx_email_user', 'email_notifications', ['user_id'])


def downgrade() -> None:
    op.drop_index('idx_email_user', table_name='email_notifications')
    op.drop_index('idx_email_status', table_name='email_notifications')
    op.drop_index('ix_email_notifications_id', table_name='email_notifications')
    op.drop_table('email_notifications')
    op.drop_index('idx_analytics_event_type', table_name='analytics_events')
    op.drop_index('ix_analytics_events_created_at', table_name='analytics_events')
    op.drop_index('ix_analytics_events_id', table_name='analytics_events')
    op.drop_table('analytics_events')
    op.drop_index('idx_admin_log_action', table_name='admin_logs')
    op.drop_index('idx_admin_log_admin', table_name='admin_logs')
    op.drop_index('ix_admin_logs_created_at', table_name='admin_logs')
    op.drop_index('ix_admin_logs_id', table_name='admin_logs')
    op.drop_table('admin_logs')
    op.drop_index('idx_analysis_created', table_name='analysis_results')
    op.drop_index('idx_analysis_severity', table_name='analysis_results')
    op.drop_index('idx_analysis_user', table_name='analysis_results')
    op.drop_index('ix_analysis_results_id', table_name='analysis_results')
    op.drop_table('analysis_results')
    op.drop_index('idx_submission_created', table_name='submissions')
    op.drop_index('idx_submission_status', table_name='submissions')
    op.drop_index('idx_submission_user', table_name='submissions')
    op.drop_index('ix_submissions_id', table_name='submissions')
    op.drop_table('submissions')
    op.drop_index('idx_profile_year_level', table_name='student_profiles')
    op.drop_index('idx_profile_course', table_name='student_profiles')
    op.drop_index('ix_student_profiles_student_id', table_name='student_profiles')
    op.drop_index('ix_student_profiles_id', table_name='student_profiles')
    op.drop_table('student_profiles')
    op.drop_index('idx_user_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_open_id', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
