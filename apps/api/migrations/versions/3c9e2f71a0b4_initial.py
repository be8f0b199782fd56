"""initial

Revision ID: 3c9e2f71a0b4
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3c9e2f71a0b4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

request_state = postgresql.ENUM(
    'PENDIENTE', 'APROBADO', 'RECHAZADO', 'UTILIZADO', 'VENCIDO',
    name='request_state',
    create_type=False,
)
permission_kind = postgresql.ENUM(
    'ACCESO_PADRE', 'EVENTO_ESTUDIANTE', 'EMERGENCIA', 'RECURRENTE',
    name='permission_kind',
    create_type=False,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def _resolution() -> list[sa.Column]:
    return [
        sa.Column('state', request_state, nullable=False),
        sa.Column('approver_id', sa.UUID(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['approver_id'], ['users.id'], ondelete='SET NULL'),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    request_state.create(bind, checkfirst=True)
    permission_kind.create(bind, checkfirst=True)

    # Directory
    op.create_table('users',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table('roles',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('name', sa.String(length=50), nullable=False),
    sa.Column('description', sa.String(length=255), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('name')
    )

    op.create_table('courses',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('parallel', sa.String(length=10), nullable=True),
    sa.Column('school_year', sa.String(length=20), nullable=True),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_table('teacher_profiles',
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('specialty', sa.String(length=100), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('user_id')
    )

    op.create_table('teacher_courses',
    sa.Column('teacher_id', sa.UUID(), nullable=False),
    sa.Column('course_id', sa.Integer(), nullable=False),
    sa.Column('is_tutor', sa.Boolean(), nullable=False),
    sa.ForeignKeyConstraint(['teacher_id'], ['teacher_profiles.user_id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('teacher_id', 'course_id')
    )

    op.create_table('student_profiles',
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('course_id', sa.Integer(), nullable=False),
    sa.Column('grade', sa.String(length=20), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('user_id')
    )
    op.create_index(op.f('ix_student_profiles_course_id'), 'student_profiles', ['course_id'], unique=False)

    op.create_table('parent_profiles',
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('address', sa.String(length=255), nullable=True),
    sa.Column('phone', sa.String(length=30), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('user_id')
    )

    # Workflow requests
    op.create_table('role_grants',
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('role_id', sa.Integer(), nullable=False),
    *_resolution(),
    *_timestamps(),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('user_id', 'role_id')
    )
    op.create_index(op.f('ix_role_grants_state'), 'role_grants', ['state'], unique=False)

    op.create_table('guardian_links',
    sa.Column('parent_id', sa.UUID(), nullable=False),
    sa.Column('student_id', sa.UUID(), nullable=False),
    sa.Column('is_representative', sa.Boolean(), nullable=False),
    *_resolution(),
    *_timestamps(),
    sa.ForeignKeyConstraint(['parent_id'], ['parent_profiles.user_id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['student_id'], ['student_profiles.user_id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('parent_id', 'student_id')
    )
    op.create_index(op.f('ix_guardian_links_state'), 'guardian_links', ['state'], unique=False)

    op.create_table('access_permissions',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('parent_id', sa.UUID(), nullable=False),
    sa.Column('course_id', sa.Integer(), nullable=False),
    sa.Column('student_id', sa.UUID(), nullable=True),
    sa.Column('kind', permission_kind, nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('window_start', sa.DateTime(timezone=True), nullable=False),
    sa.Column('window_end', sa.DateTime(timezone=True), nullable=False),
    sa.Column('credential_token', sa.String(length=128), nullable=True),
    *_resolution(),
    *_timestamps(),
    sa.ForeignKeyConstraint(['parent_id'], ['parent_profiles.user_id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['student_id'], ['student_profiles.user_id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('credential_token')
    )
    op.create_index(op.f('ix_access_permissions_parent_id'), 'access_permissions', ['parent_id'], unique=False)
    op.create_index(op.f('ix_access_permissions_course_id'), 'access_permissions', ['course_id'], unique=False)
    op.create_index(op.f('ix_access_permissions_state'), 'access_permissions', ['state'], unique=False)
    # Expiry sweep
    op.create_index('ix_access_permissions_state_window_end', 'access_permissions', ['state', 'window_end'], unique=False)

    # Notifications
    op.create_table('notifications',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('type', sa.String(length=20), nullable=False),
    sa.Column('category', sa.String(length=50), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('message', sa.Text(), nullable=False),
    sa.Column('action_url', sa.String(length=500), nullable=True),
    sa.Column('data', postgresql.JSON(astext_type=sa.Text()), nullable=False),
    sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index('ix_notifications_user_unread', 'notifications', ['user_id', 'read_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_notifications_user_unread', table_name='notifications')
    op.drop_index(op.f('ix_notifications_user_id'), table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('ix_access_permissions_state_window_end', table_name='access_permissions')
    op.drop_index(op.f('ix_access_permissions_state'), table_name='access_permissions')
    op.drop_index(op.f('ix_access_permissions_course_id'), table_name='access_permissions')
    op.drop_index(op.f('ix_access_permissions_parent_id'), table_name='access_permissions')
    op.drop_table('access_permissions')
    op.drop_index(op.f('ix_guardian_links_state'), table_name='guardian_links')
    op.drop_table('guardian_links')
    op.drop_index(op.f('ix_role_grants_state'), table_name='role_grants')
    op.drop_table('role_grants')

    op.drop_table('parent_profiles')
    op.drop_index(op.f('ix_student_profiles_course_id'), table_name='student_profiles')
    op.drop_table('student_profiles')
    op.drop_table('teacher_courses')
    op.drop_table('teacher_profiles')
    op.drop_table('courses')
    op.drop_table('roles')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')

    bind = op.get_bind()
    permission_kind.drop(bind, checkfirst=True)
    request_state.drop(bind, checkfirst=True)
