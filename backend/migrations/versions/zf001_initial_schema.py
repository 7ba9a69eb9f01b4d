"""initial zakat fitrah schema

Revision ID: zf001
Revises:
Create Date: 2026-03-01 00:00:00.000000

Creates the complete schema from scratch:
- users / session_tokens: committee accounts and the server-side session store
- rw / rt: neighborhood grouping
- master_zakat: selectable obligation rates
- muzakki / muzakki_details / infak: payment ledger
- mustahik / distribusi_zakat / allocation_locks: distribution
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'zf001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='panitia'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_phone', 'users', ['phone'], unique=True)

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # rw / rt
    # ============================================================================
    op.create_table(
        'rw',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=10), nullable=False),
        sa.Column('leader', sa.String(length=100), nullable=False),
        sa.Column('note', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('number'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'rt',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=10), nullable=False),
        sa.Column('leader', sa.String(length=100), nullable=False),
        sa.Column('note', sa.String(length=100), nullable=True),
        sa.Column('group_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['group_id'], ['rw.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_rt_group_id', 'rt', ['group_id'])

    # ============================================================================
    # master_zakat: unit_weight_kg > 0 means a rice rate
    # ============================================================================
    op.create_table(
        'master_zakat',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('unit_price', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('unit_weight_kg', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['updated_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_master_zakat_name', 'master_zakat', ['name'])

    # ============================================================================
    # muzakki / muzakki_details / infak
    # ============================================================================
    op.create_table(
        'muzakki',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subdivision_id', sa.Integer(), nullable=False),
        sa.Column('headcount', sa.Integer(), nullable=False),
        sa.Column('zakat_kind', sa.String(length=8), nullable=False),
        sa.Column('rate_id', sa.Integer(), nullable=True),
        sa.Column('rice_kg', sa.Numeric(10, 2), nullable=True),
        sa.Column('money_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('obligation_amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('obligation_value', sa.Numeric(15, 2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(15, 2), nullable=False),
        sa.Column('change_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('payment_unit', sa.String(length=4), nullable=False, server_default='rp'),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('recorded_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('(rice_kg IS NULL) <> (money_amount IS NULL)', name='ck_muzakki_one_amount'),
        sa.ForeignKeyConstraint(['subdivision_id'], ['rt.id'], ),
        sa.ForeignKeyConstraint(['rate_id'], ['master_zakat.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['recorded_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_muzakki_subdivision_id', 'muzakki', ['subdivision_id'])
    op.create_index('ix_muzakki_rate_id', 'muzakki', ['rate_id'])
    op.create_index('ix_muzakki_rt_created', 'muzakki', ['subdivision_id', 'created_at'])

    op.create_table(
        'muzakki_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('payer_id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=100), nullable=False),
        sa.Column('patronymic', sa.String(length=10), nullable=True),
        sa.Column('parent_name', sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(['payer_id'], ['muzakki.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_muzakki_details_payer_id', 'muzakki_details', ['payer_id'])

    op.create_table(
        'infak',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('payer_id', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='manual'),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('recorded_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['payer_id'], ['muzakki.id'], ),
        sa.ForeignKeyConstraint(['recorded_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_infak_payer_source', 'infak', ['payer_id', 'source'])

    # ============================================================================
    # mustahik / distribusi_zakat / allocation_locks
    # ============================================================================
    op.create_table(
        'mustahik',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subdivision_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['subdivision_id'], ['rt.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_mustahik_subdivision_id', 'mustahik', ['subdivision_id'])
    op.create_index('ix_mustahik_category', 'mustahik', ['category'])

    op.create_table(
        'distribusi_zakat',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('beneficiary_id', sa.Integer(), nullable=False),
        sa.Column('zakat_kind', sa.String(length=8), nullable=False),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('proof_photo', sa.String(length=255), nullable=True),
        sa.Column('recorded_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['beneficiary_id'], ['mustahik.id'], ),
        sa.ForeignKeyConstraint(['recorded_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_distribusi_zakat_beneficiary_id', 'distribusi_zakat', ['beneficiary_id'])
    op.create_index('ix_distribusi_zakat_status', 'distribusi_zakat', ['status'])
    op.create_index('ix_distribusi_kind_status', 'distribusi_zakat', ['zakat_kind', 'status'])

    allocation_locks = op.create_table(
        'allocation_locks',
        sa.Column('zakat_kind', sa.String(length=8), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('zakat_kind'),
    )
    op.bulk_insert(allocation_locks, [
        {'zakat_kind': 'beras', 'version': 0},
        {'zakat_kind': 'uang', 'version': 0},
    ])


def downgrade():
    op.drop_table('allocation_locks')
    op.drop_table('distribusi_zakat')
    op.drop_table('mustahik')
    op.drop_table('infak')
    op.drop_table('muzakki_details')
    op.drop_table('muzakki')
    op.drop_table('master_zakat')
    op.drop_table('rt')
    op.drop_table('rw')
    op.drop_table('session_tokens')
    op.drop_table('users')
