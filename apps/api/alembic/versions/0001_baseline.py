"""Baseline migration - organizations, roles, membership, invitations, profiles, audit.

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates:
- organizations, org_roles, org_members
- invitations, invitation_codes
- user_profiles, user_devices, impersonation_sessions
- audit_logs
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_baseline'
down_revision = None
branch_labels = None
depends_on = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')
TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    # ==========================================================================
    # organizations
    # ==========================================================================
    op.create_table(
        'organizations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('logo_url', sa.String(500), nullable=True),
        sa.Column('metadata', JSON_TYPE, nullable=True),
        sa.Column('created_by', sa.String(255), nullable=False),
        sa.Column('is_personal', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('status', sa.String(20), server_default=sa.text("'active'"), nullable=False),
        sa.Column('deleted_at', TS, nullable=True),
        sa.Column('created_at', TS, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', TS, server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )
    op.create_index('ix_organizations_status_deleted_at', 'organizations', ['status', 'deleted_at'])

    # ==========================================================================
    # org_roles
    # ==========================================================================
    op.create_table(
        'org_roles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('permissions', JSON_TYPE, nullable=False),
        sa.Column('is_system', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('created_at', TS, server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'name', name='uq_org_roles_org_name'),
    )
    op.create_index('ix_org_roles_org_sort', 'org_roles', ['organization_id', 'sort_order'])

    # ==========================================================================
    # org_members
    # ==========================================================================
    op.create_table(
        'org_members',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('role_id', sa.Uuid(), nullable=False),
        sa.Column('invited_by', sa.String(255), nullable=True),
        sa.Column('joined_at', TS, server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['role_id'], ['org_roles.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'user_id', name='uq_org_members_org_user'),
    )
    op.create_index('ix_org_members_user', 'org_members', ['user_id'])
    op.create_index('ix_org_members_role', 'org_members', ['role_id'])

    # ==========================================================================
    # invitations
    # ==========================================================================
    op.create_table(
        'invitations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(320), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('role_id', sa.Uuid(), nullable=False),
        sa.Column('invited_by', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('expires_at', TS, nullable=False),
        sa.Column('accepted_by', sa.String(255), nullable=True),
        sa.Column('accepted_at', TS, nullable=True),
        sa.Column('created_at', TS, server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('email IS NOT NULL OR phone IS NOT NULL', name='ck_invitations_recipient'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
    )
    op.create_index('ix_invitations_org_status', 'invitations', ['organization_id', 'status'])
    op.create_index('ix_invitations_org_email', 'invitations', ['organization_id', 'email'])
    op.create_index('ix_invitations_org_phone', 'invitations', ['organization_id', 'phone'])
    op.create_index('ix_invitations_role', 'invitations', ['role_id'])

    # ==========================================================================
    # invitation_codes
    # ==========================================================================
    op.create_table(
        'invitation_codes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(32), nullable=False),
        sa.Column('role_id', sa.Uuid(), nullable=False),
        sa.Column('created_by', sa.String(255), nullable=False),
        sa.Column('max_redemptions', sa.Integer(), nullable=True),
        sa.Column('redemption_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('expires_at', TS, nullable=True),
        sa.Column('status', sa.String(20), server_default=sa.text("'active'"), nullable=False),
        sa.Column('revoked_at', TS, nullable=True),
        sa.Column('created_at', TS, server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )
    op.create_index('ix_invitation_codes_org', 'invitation_codes', ['organization_id'])
    op.create_index('ix_invitation_codes_status_revoked', 'invitation_codes', ['status', 'revoked_at'])

    # ==========================================================================
    # user_profiles
    # ==========================================================================
    op.create_table(
        'user_profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('email', sa.String(320), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('avatar_url', sa.String(500), nullable=True),
        sa.Column('metadata', JSON_TYPE, nullable=True),
        sa.Column('active_org_id', sa.Uuid(), nullable=True),
        sa.Column('last_active_at', TS, nullable=True),
        sa.Column('is_banned', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('ban_reason', sa.Text(), nullable=True),
        sa.Column('banned_at', TS, nullable=True),
        sa.Column('is_admin', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('deleted_at', TS, nullable=True),
        sa.Column('created_at', TS, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', TS, server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['active_org_id'], ['organizations.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index('ix_user_profiles_email', 'user_profiles', ['email'])
    op.create_index('ix_user_profiles_deleted_at', 'user_profiles', ['deleted_at'])

    # ==========================================================================
    # user_devices
    # ==========================================================================
    op.create_table(
        'user_devices',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('session_id', sa.String(255), nullable=False),
        sa.Column('device_name', sa.String(255), nullable=True),
        sa.Column('device_type', sa.String(20), nullable=True),
        sa.Column('browser', sa.String(100), nullable=True),
        sa.Column('os', sa.String(100), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('last_active_at', TS, server_default=sa.func.now(), nullable=False),
        sa.Column('created_at', TS, server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id'),
    )
    op.create_index('ix_user_devices_user', 'user_devices', ['user_id'])

    # ==========================================================================
    # impersonation_sessions
    # ==========================================================================
    op.create_table(
        'impersonation_sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('admin_user_id', sa.String(255), nullable=False),
        sa.Column('target_user_id', sa.String(255), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), server_default=sa.text("'active'"), nullable=False),
        sa.Column('started_at', TS, server_default=sa.func.now(), nullable=False),
        sa.Column('expires_at', TS, nullable=False),
        sa.Column('ended_at', TS, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_impersonation_admin_status', 'impersonation_sessions', ['admin_user_id', 'status'])
    op.create_index('ix_impersonation_target', 'impersonation_sessions', ['target_user_id'])
    op.create_index('ix_impersonation_status_expires', 'impersonation_sessions', ['status', 'expires_at'])

    # ==========================================================================
    # audit_logs
    # ==========================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=True),
        sa.Column('actor_user_id', sa.String(255), nullable=False),
        sa.Column('effective_user_id', sa.String(255), nullable=True),
        sa.Column('action', sa.String(64), nullable=False),
        sa.Column('resource_type', sa.String(64), nullable=False),
        sa.Column('resource_id', sa.String(255), nullable=True),
        sa.Column('metadata', JSON_TYPE, nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('timestamp', TS, server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_audit_org_ts', 'audit_logs', ['organization_id', 'timestamp'])
    op.create_index('idx_audit_org_action_ts', 'audit_logs', ['organization_id', 'action', 'timestamp'])
    op.create_index('idx_audit_org_actor_ts', 'audit_logs', ['organization_id', 'actor_user_id', 'timestamp'])
    op.create_index('idx_audit_action_ts', 'audit_logs', ['action', 'timestamp'])
    op.create_index('idx_audit_actor_ts', 'audit_logs', ['actor_user_id', 'timestamp'])
    op.create_index('idx_audit_resource', 'audit_logs', ['resource_type', 'resource_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('impersonation_sessions')
    op.drop_table('user_devices')
    op.drop_table('user_profiles')
    op.drop_table('invitation_codes')
    op.drop_table('invitations')
    op.drop_table('org_members')
    op.drop_table('org_roles')
    op.drop_table('organizations')
