"""Initial gift economy schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create wallets table
    op.create_table('wallets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('diamonds', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sa.CheckConstraint('balance >= 0', name='chk_wallet_balance_nonneg'),
        sa.CheckConstraint('diamonds >= 0', name='chk_wallet_diamonds_nonneg')
    )

    # Create ledger_entries table
    op.create_table('ledger_entries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('wallet_id', sa.Uuid(), nullable=False),
        sa.Column('currency', sa.String(length=16), nullable=False, server_default='COINS'),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='COMPLETED'),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('balance_before', sa.BigInteger(), nullable=False),
        sa.Column('balance_after', sa.BigInteger(), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('idempotency_key', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id']),
        sa.UniqueConstraint('idempotency_key'),
        sa.CheckConstraint('amount <> 0', name='chk_ledger_amount_nonzero'),
        sa.CheckConstraint('balance_after >= 0', name='chk_ledger_balance_after_nonneg'),
        sa.CheckConstraint('balance_after = balance_before + amount', name='chk_ledger_balance_math')
    )
    op.create_index('ix_ledger_entries_wallet_created', 'ledger_entries', ['wallet_id', 'created_at'])

    # Create gifts table
    op.create_table('gifts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False, server_default='STANDARD'),
        sa.Column('price', sa.BigInteger(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('price > 0', name='chk_gift_price_positive')
    )

    # Create gift_sends table
    op.create_table('gift_sends',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=128), nullable=False),
        sa.Column('gift_id', sa.Uuid(), nullable=False),
        sa.Column('sender_id', sa.String(length=64), nullable=False),
        sa.Column('receiver_id', sa.String(length=64), nullable=False),
        sa.Column('room_id', sa.Uuid(), nullable=True),
        sa.Column('room_owner_id', sa.String(length=64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.BigInteger(), nullable=False),
        sa.Column('platform_share', sa.BigInteger(), nullable=False),
        sa.Column('receiver_share', sa.BigInteger(), nullable=False),
        sa.Column('owner_share', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('sender_balance_after', sa.BigInteger(), nullable=False),
        sa.Column('message', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['gift_id'], ['gifts.id']),
        sa.UniqueConstraint('idempotency_key', name='uq_gift_sends_idempotency_key'),
        sa.CheckConstraint('sender_id <> receiver_id', name='chk_gift_send_not_self'),
        sa.CheckConstraint('quantity >= 1', name='chk_gift_send_quantity'),
        sa.CheckConstraint('total_price > 0', name='chk_gift_send_total_positive'),
        sa.CheckConstraint('platform_share + receiver_share + owner_share = total_price', name='chk_gift_send_split_exact')
    )
    op.create_index('ix_gift_sends_sender_created', 'gift_sends', ['sender_id', 'created_at'])
    op.create_index('ix_gift_sends_receiver_created', 'gift_sends', ['receiver_id', 'created_at'])

    # Create rooms and room_members tables
    op.create_table('rooms',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('owner_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('room_members',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('room_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('is_banned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('banned_until', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('is_muted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('muted_until', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('joined_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
        sa.UniqueConstraint('room_id', 'user_id', name='uq_room_members_room_user')
    )

    # Create grants table
    op.create_table('grants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('price', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'kind', name='uq_grants_user_kind')
    )
    op.create_index('ix_grants_status_expires', 'grants', ['status', 'expires_at'])

    # Create housekeeping tables
    op.create_table('agent_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('rejection_reason', sa.String(length=255), nullable=True),
        sa.Column('reviewed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_agent_requests_status_expires', 'agent_requests', ['status', 'expires_at'])

    op.create_table('refresh_tokens',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('token_hash', sa.String(length=128), nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash')
    )

    op.create_table('notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_read_created', 'notifications', ['is_read', 'created_at'])

    op.create_table('messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('room_id', sa.Uuid(), nullable=False),
        sa.Column('sender_id', sa.String(length=64), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )

    # Create audit_logs table
    op.create_table('audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('actor_id', sa.String(length=64), nullable=False),
        sa.Column('target_id', sa.String(length=64), nullable=True),
        sa.Column('action', sa.String(length=128), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('messages')
    op.drop_index('ix_notifications_read_created', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('refresh_tokens')
    op.drop_index('ix_agent_requests_status_expires', table_name='agent_requests')
    op.drop_table('agent_requests')
    op.drop_index('ix_grants_status_expires', table_name='grants')
    op.drop_table('grants')
    op.drop_table('room_members')
    op.drop_table('rooms')
    op.drop_index('ix_gift_sends_receiver_created', table_name='gift_sends')
    op.drop_index('ix_gift_sends_sender_created', table_name='gift_sends')
    op.drop_table('gift_sends')
    op.drop_table('gifts')
    op.drop_index('ix_ledger_entries_wallet_created', table_name='ledger_entries')
    op.drop_table('ledger_entries')
    op.drop_table('wallets')
