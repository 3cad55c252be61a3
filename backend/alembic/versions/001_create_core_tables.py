"""Create identity, tenancy, RBAC, licensing and session tables

Revision ID: 001
Revises:
Create Date: 2026-02-15

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    ]


def _pk():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('uuid_generate_v4()'))


def upgrade() -> None:
    """Create core tables, partial unique indexes and invariant triggers."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # Organizations
    op.create_table(
        'organizations',
        _pk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        *_timestamps(),
        sa.CheckConstraint('LENGTH(name) > 0', name='organization_name_not_empty'),
    )
    op.create_index('ix_organizations_name', 'organizations', ['name'], unique=True)

    # Users
    op.create_table(
        'users',
        _pk(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending_verification'),
        sa.Column('is_email_verified', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('email_verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('locked_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending_verification', 'active', 'suspended', 'invited')",
            name='user_status_valid',
        ),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Memberships
    op.create_table(
        'memberships',
        _pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('is_primary', sa.Boolean, nullable=False, server_default='false'),
        *_timestamps(),
    )
    op.create_index('ix_memberships_user_id', 'memberships', ['user_id'])
    op.create_index('ix_memberships_organization_id', 'memberships', ['organization_id'])
    op.create_index(
        'uq_memberships_primary_per_user',
        'memberships',
        ['user_id'],
        unique=True,
        postgresql_where=sa.text('is_primary AND is_active'),
    )
    op.create_index(
        'uq_memberships_active_pair',
        'memberships',
        ['user_id', 'organization_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    # Roles and permissions
    op.create_table(
        'roles',
        _pk(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('code', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('is_system', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        *_timestamps(),
    )
    op.create_index('ix_roles_code', 'roles', ['code'], unique=True)

    op.create_table(
        'permissions',
        _pk(),
        sa.Column('code', sa.String(150), nullable=False),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('resource', sa.String(100), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('is_system', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        *_timestamps(),
    )
    op.create_index('ix_permissions_code', 'permissions', ['code'], unique=True)
    op.create_index('ix_permissions_resource', 'permissions', ['resource'])

    op.create_table(
        'role_permissions',
        _pk(),
        sa.Column('role_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_allowed', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('scope', sa.String(100), nullable=True),
        sa.Column('constraints', postgresql.JSONB, nullable=True),
        sa.Column('assigned_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        *_timestamps(),
        sa.UniqueConstraint('role_id', 'permission_id', name='uq_role_permissions_pair'),
    )
    op.create_index('ix_role_permissions_role_id', 'role_permissions', ['role_id'])
    op.create_index('ix_role_permissions_permission_id', 'role_permissions', ['permission_id'])

    op.create_table(
        'user_roles',
        _pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'role_id', name='uq_user_roles_pair'),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])
    op.create_index('ix_user_roles_role_id', 'user_roles', ['role_id'])

    # Licenses
    op.create_table(
        'licenses',
        _pk(),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('key', sa.String(64), nullable=False),
        sa.Column('plan_name', sa.String(100), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('max_users', sa.Integer, nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        *_timestamps(),
        sa.CheckConstraint('starts_at < expires_at', name='license_window_valid'),
        sa.CheckConstraint('max_users IS NULL OR max_users > 0', name='license_max_users_positive'),
        sa.CheckConstraint(
            "status IN ('active', 'expired', 'revoked', 'suspended')",
            name='license_status_valid',
        ),
    )
    op.create_index('ix_licenses_key', 'licenses', ['key'], unique=True)
    op.create_index('ix_licenses_organization_id', 'licenses', ['organization_id'])
    op.create_index('ix_licenses_expires_at', 'licenses', ['expires_at'])

    # Tokens and failed logins
    op.create_table(
        'tokens',
        _pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('type', sa.String(32), nullable=False, server_default='access'),
        sa.Column('scope', sa.String(255), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(255), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.Text, nullable=True),
        sa.Column('metadata', postgresql.JSONB, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        *_timestamps(),
    )
    op.create_index('ix_tokens_token_hash', 'tokens', ['token_hash'], unique=True)
    op.create_index('ix_tokens_user_id', 'tokens', ['user_id'])
    op.create_index('ix_tokens_type', 'tokens', ['type'])
    op.create_index('ix_tokens_expires_at', 'tokens', ['expires_at'])

    op.create_table(
        'invalid_login_attempts',
        _pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True),
        sa.Column('attempted_email', sa.String(255), nullable=False),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.Text, nullable=True),
        sa.Column('failure_reason', sa.String(255), nullable=True),
        sa.Column('attempt_count_window', sa.Integer, nullable=False, server_default='1'),
        sa.Column('locked_until', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_invalid_login_attempts_user_id', 'invalid_login_attempts', ['user_id'])
    op.create_index(
        'ix_invalid_login_attempts_email_created',
        'invalid_login_attempts',
        ['attempted_email', 'created_at'],
    )

    # Audit events
    op.create_table(
        'audit_events',
        _pk(),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('diff_json', postgresql.JSONB, nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('request_id', sa.String(128), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_audit_events_org_id', 'audit_events', ['org_id'])
    op.create_index('ix_audit_events_user_id', 'audit_events', ['user_id'])
    op.create_index('ix_audit_events_entity', 'audit_events', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_events_created_at', 'audit_events', ['created_at'])

    # License key is write-once
    op.execute("""
        CREATE OR REPLACE FUNCTION licenses_prevent_key_update()
        RETURNS TRIGGER AS $$
        BEGIN
            IF NEW.key IS DISTINCT FROM OLD.key THEN
                RAISE EXCEPTION 'License key is immutable and cannot be updated'
                    USING ERRCODE = 'check_violation';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER licenses_prevent_key_update
        BEFORE UPDATE ON licenses
        FOR EACH ROW EXECUTE FUNCTION licenses_prevent_key_update();
    """)

    # System roles/permissions cannot be deleted or downgraded
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_system_delete()
        RETURNS TRIGGER AS $$
        BEGIN
            IF OLD.is_system THEN
                RAISE EXCEPTION 'System % cannot be deleted', TG_TABLE_NAME
                    USING ERRCODE = 'check_violation';
            END IF;
            RETURN OLD;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_system_unset()
        RETURNS TRIGGER AS $$
        BEGIN
            IF OLD.is_system AND NOT NEW.is_system THEN
                RAISE EXCEPTION 'System % cannot be downgraded', TG_TABLE_NAME
                    USING ERRCODE = 'check_violation';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    for table in ('roles', 'permissions'):
        op.execute(f"""
            CREATE TRIGGER {table}_prevent_system_delete
            BEFORE DELETE ON {table}
            FOR EACH ROW EXECUTE FUNCTION prevent_system_delete();
        """)
        op.execute(f"""
            CREATE TRIGGER {table}_prevent_system_unset
            BEFORE UPDATE ON {table}
            FOR EACH ROW EXECUTE FUNCTION prevent_system_unset();
        """)

    # Audit events are append-only
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_audit_modification()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'Audit events cannot be modified or deleted';
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER prevent_audit_update
        BEFORE UPDATE ON audit_events
        FOR EACH ROW EXECUTE FUNCTION prevent_audit_modification();
    """)
    op.execute("""
        CREATE TRIGGER prevent_audit_delete
        BEFORE DELETE ON audit_events
        FOR EACH ROW EXECUTE FUNCTION prevent_audit_modification();
    """)


def downgrade() -> None:
    """Drop core tables."""
    # Drop triggers first
    op.execute('DROP TRIGGER IF EXISTS prevent_audit_delete ON audit_events')
    op.execute('DROP TRIGGER IF EXISTS prevent_audit_update ON audit_events')
    op.execute('DROP FUNCTION IF EXISTS prevent_audit_modification()')
    for table in ('roles', 'permissions'):
        op.execute(f'DROP TRIGGER IF EXISTS {table}_prevent_system_unset ON {table}')
        op.execute(f'DROP TRIGGER IF EXISTS {table}_prevent_system_delete ON {table}')
    op.execute('DROP FUNCTION IF EXISTS prevent_system_unset()')
    op.execute('DROP FUNCTION IF EXISTS prevent_system_delete()')
    op.execute('DROP TRIGGER IF EXISTS licenses_prevent_key_update ON licenses')
    op.execute('DROP FUNCTION IF EXISTS licenses_prevent_key_update()')

    # Drop tables
    op.drop_table('audit_events')
    op.drop_table('invalid_login_attempts')
    op.drop_table('tokens')
    op.drop_table('licenses')
    op.drop_table('user_roles')
    op.drop_table('role_permissions')
    op.drop_table('permissions')
    op.drop_table('roles')
    op.drop_table('memberships')
    op.drop_table('users')
    op.drop_table('organizations')
