"""initial settlement schema

Revision ID: 9a1c2e4f6b80
Revises:
Create Date: 2026-09-14 10:12:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9a1c2e4f6b80'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_banned', sa.Boolean(), nullable=False),
        sa.Column('ban_reason', sa.String(length=240), nullable=True),
        sa.Column('banned_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=True)

    op.create_table(
        'admins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('admins', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_admins_user_id'), ['user_id'], unique=True)

    op.create_table(
        'sellers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('shop_name', sa.String(length=160), nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False),
        sa.Column('processor_account_id', sa.String(length=64), nullable=True),
        sa.Column('charges_enabled', sa.Boolean(), nullable=False),
        sa.Column('payouts_enabled', sa.Boolean(), nullable=False),
        sa.Column('onboarding_complete', sa.Boolean(), nullable=False),
        sa.Column('verification_status', sa.String(length=64), nullable=True),
        sa.Column('requirements_due', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('sellers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sellers_user_id'), ['user_id'], unique=True)
        batch_op.create_index(batch_op.f('ix_sellers_processor_account_id'), ['processor_account_id'], unique=True)

    op.create_table(
        'seller_applications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('shop_name', sa.String(length=160), nullable=False),
        sa.Column('shop_description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('rejection_reason', sa.String(length=240), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('seller_applications', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_seller_applications_user_id'), ['user_id'], unique=False)

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('seller_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=160), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('moderation_status', sa.String(length=16), nullable=False),
        sa.Column('moderated_by', sa.Integer(), nullable=True),
        sa.Column('moderated_at', sa.DateTime(), nullable=True),
        sa.Column('moderation_notes', sa.String(length=240), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_seller_id'), ['seller_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_moderation_status'), ['moderation_status'], unique=False)

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('buyer_id', sa.Integer(), nullable=False),
        sa.Column('seller_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('platform_fee', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('seller_earnings', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False),
        sa.Column('processor_payment_intent_id', sa.String(length=64), nullable=True),
        sa.Column('processor_charge_id', sa.String(length=64), nullable=True),
        sa.Column('amount_paid', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('payment_failure_message', sa.String(length=240), nullable=True),
        sa.Column('payment_failed_at', sa.DateTime(), nullable=True),
        sa.Column('refund_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('refunded_at', sa.DateTime(), nullable=True),
        sa.Column('stock_restored_at', sa.DateTime(), nullable=True),
        sa.Column('dispute_id', sa.String(length=64), nullable=True),
        sa.Column('dispute_status', sa.String(length=16), nullable=False, server_default='none'),
        sa.Column('dispute_reason', sa.String(length=120), nullable=True),
        sa.Column('dispute_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('dispute_opened_at', sa.DateTime(), nullable=True),
        sa.Column('dispute_resolved_at', sa.DateTime(), nullable=True),
        sa.Column('dispute_result', sa.String(length=16), nullable=True),
        sa.Column('tracking_number', sa.String(length=64), nullable=True),
        sa.Column('shipping_carrier', sa.String(length=32), nullable=True),
        sa.Column('shipped_at', sa.DateTime(), nullable=True),
        sa.Column('estimated_delivery', sa.DateTime(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['buyer_id'], ['users.id']),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('orders', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_orders_order_number'), ['order_number'], unique=True)
        batch_op.create_index(batch_op.f('ix_orders_buyer_id'), ['buyer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_seller_id'), ['seller_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_processor_payment_intent_id'), ['processor_payment_intent_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_processor_charge_id'), ['processor_charge_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_dispute_id'), ['dispute_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_tracking_number'), ['tracking_number'], unique=False)

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('order_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_order_items_order_id'), ['order_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_order_items_product_id'), ['product_id'], unique=False)

    op.create_table(
        'seller_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('seller_id', sa.Integer(), nullable=False),
        sa.Column('available_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('pending_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_withdrawn', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('seller_balances', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_seller_balances_seller_id'), ['seller_id'], unique=True)

    op.create_table(
        'seller_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('seller_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('operation', sa.String(length=8), nullable=False),
        sa.Column('field', sa.String(length=24), nullable=False),
        sa.Column('counter_field', sa.String(length=24), nullable=True),
        sa.Column('gross_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('net_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('applied_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('description', sa.String(length=240), nullable=True),
        sa.Column('reference', sa.String(length=80), nullable=True),
        sa.Column('idempotency_key', sa.String(length=160), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('seller_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_seller_transactions_seller_id'), ['seller_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_seller_transactions_reference'), ['reference'], unique=False)
        batch_op.create_index(batch_op.f('ix_seller_transactions_idempotency_key'), ['idempotency_key'], unique=True)

    op.create_table(
        'withdrawal_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('seller_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('processed_by', sa.Integer(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('withdrawal_requests', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_withdrawal_requests_seller_id'), ['seller_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_withdrawal_requests_status'), ['status'], unique=False)

    op.create_table(
        'seller_payouts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('seller_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('transfer_id', sa.String(length=64), nullable=True),
        sa.Column('error_message', sa.String(length=240), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('seller_id', 'order_id', name='uq_seller_payouts_seller_order'),
    )
    with op.batch_alter_table('seller_payouts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_seller_payouts_seller_id'), ['seller_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_seller_payouts_order_id'), ['order_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_seller_payouts_transfer_id'), ['transfer_id'], unique=True)

    op.create_table(
        'stock_restorations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=16), nullable=False),
        sa.Column('units', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'reason', name='uq_stock_restorations_order_reason'),
    )
    with op.batch_alter_table('stock_restorations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_restorations_order_id'), ['order_id'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=48), nullable=False),
        sa.Column('title', sa.String(length=160), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('link', sa.String(length=240), nullable=True),
        sa.Column('data', sa.Text(), nullable=True),
        sa.Column('channel', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('notifications', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_notifications_user_id'), ['user_id'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('target_type', sa.String(length=64), nullable=True),
        sa.Column('target_id', sa.String(length=64), nullable=True),
        sa.Column('severity', sa.String(length=16), nullable=False),
        sa.Column('meta', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('audit_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_audit_logs_action'), ['action'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_logs_target_id'), ['target_id'], unique=False)


def downgrade():
    for table in (
        'audit_logs',
        'notifications',
        'stock_restorations',
        'seller_payouts',
        'withdrawal_requests',
        'seller_transactions',
        'seller_balances',
        'order_items',
        'orders',
        'products',
        'seller_applications',
        'sellers',
        'admins',
        'users',
    ):
        op.drop_table(table)
