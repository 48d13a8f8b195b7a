"""Create affiliate ledger tables

Revision ID: 20260101_000001
Revises: 
Create Date: 2026-01-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260101_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


MONEY = sa.DECIMAL(12, 2)
RATE = sa.DECIMAL(5, 4)


def upgrade() -> None:
    # Commission tiers
    tiers = op.create_table(
        'tiers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(50), nullable=False),
        sa.Column('min_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('commission_rate', RATE, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('perks', sa.JSON(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('min_referrals >= 0', name='check_tier_min_referrals_non_negative'),
        sa.CheckConstraint(
            'commission_rate >= 0 AND commission_rate <= 1',
            name='check_tier_commission_rate_range',
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tiers_slug', 'tiers', ['slug'], unique=True)

    # Affiliates
    op.create_table(
        'affiliates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('identity_subject', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending',
                  comment='pending, approved, rejected, inactive'),
        sa.Column('tier', sa.String(50), nullable=False, server_default='initiate'),
        sa.Column('commission_rate', RATE, nullable=False, server_default='0.10'),
        sa.Column('referral_code', sa.String(50), nullable=False),
        sa.Column('discount_code', sa.String(50), nullable=True),
        sa.Column('storefront_discount_id', sa.String(255), nullable=True),
        sa.Column('paypal_email', sa.String(255), nullable=True),
        sa.Column('instagram_handle', sa.String(100), nullable=True),
        sa.Column('tiktok_handle', sa.String(100), nullable=True),
        sa.Column('youtube_handle', sa.String(100), nullable=True),
        sa.Column('website_url', sa.String(500), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('total_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_revenue', MONEY, nullable=False, server_default='0'),
        sa.Column('total_commission_earned', MONEY, nullable=False, server_default='0'),
        sa.Column('total_commission_paid', MONEY, nullable=False, server_default='0'),
        sa.Column('balance_owed', MONEY, nullable=False, server_default='0'),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('balance_owed >= 0', name='check_affiliate_balance_non_negative'),
        sa.CheckConstraint(
            'commission_rate >= 0 AND commission_rate <= 1',
            name='check_affiliate_commission_rate_range',
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_affiliates_identity_subject', 'affiliates', ['identity_subject'], unique=True)
    op.create_index('ix_affiliates_email', 'affiliates', ['email'])
    op.create_index('ix_affiliates_status', 'affiliates', ['status'])
    op.create_index('ix_affiliates_referral_code', 'affiliates', ['referral_code'], unique=True)
    op.create_index('ix_affiliates_discount_code', 'affiliates', ['discount_code'])
    # Codes are matched case-insensitively
    op.create_index(
        'ix_affiliates_referral_code_lower', 'affiliates', [sa.text('lower(referral_code)')]
    )

    # Referred customers
    op.create_table(
        'referred_customers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('storefront_customer_id', sa.String(64), nullable=True),
        sa.Column('subscription_customer_id', sa.String(64), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('first_order_id', sa.String(64), nullable=True),
        sa.Column('first_order_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('first_order_total', MONEY, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_referred_customers_affiliate_id', 'referred_customers', ['affiliate_id'])
    op.create_index(
        'ix_referred_customers_storefront_customer_id', 'referred_customers',
        ['storefront_customer_id'], unique=True,
    )
    op.create_index(
        'ix_referred_customers_subscription_customer_id', 'referred_customers',
        ['subscription_customer_id'], unique=True,
    )
    op.create_index('ix_referred_customers_email', 'referred_customers', ['email'])

    # Payouts (before referrals, which reference them)
    op.create_table(
        'payouts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('method', sa.String(20), nullable=False, comment='paypal, manual, store_credit'),
        sa.Column('paypal_email', sa.String(255), nullable=True),
        sa.Column('paypal_batch_id', sa.String(64), nullable=True),
        sa.Column('paypal_payout_item_id', sa.String(64), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending',
                  comment='pending, processing, completed, failed'),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('amount > 0', name='check_payout_amount_positive'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payouts_affiliate_id', 'payouts', ['affiliate_id'])
    op.create_index('ix_payouts_paypal_batch_id', 'payouts', ['paypal_batch_id'])
    op.create_index('ix_payouts_status', 'payouts', ['status'])
    # At most one payout in flight per affiliate
    op.create_index(
        'uq_payouts_affiliate_in_flight', 'payouts', ['affiliate_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'processing')"),
    )

    # Referrals (one row per attributed order)
    op.create_table(
        'referrals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('order_id', sa.String(64), nullable=False),
        sa.Column('order_source', sa.String(20), nullable=False, server_default='storefront'),
        sa.Column('order_number', sa.String(64), nullable=True),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('order_subtotal', MONEY, nullable=False),
        sa.Column('order_total', MONEY, nullable=False),
        sa.Column('commission_rate', RATE, nullable=False),
        sa.Column('commission_amount', MONEY, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending',
                  comment='pending, approved, paid, refunded, rejected'),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payout_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('order_subtotal >= 0', name='check_referral_subtotal_non_negative'),
        sa.CheckConstraint('commission_amount >= 0', name='check_referral_commission_non_negative'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['customer_id'], ['referred_customers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['payout_id'], ['payouts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        # Dedup key for webhook redelivery
        sa.UniqueConstraint('order_id', name='uq_referrals_order_id')
    )
    op.create_index('ix_referrals_affiliate_id', 'referrals', ['affiliate_id'])
    op.create_index('ix_referrals_status', 'referrals', ['status'])
    op.create_index('ix_referrals_payout_id', 'referrals', ['payout_id'])
    op.create_index('ix_referrals_created_at', 'referrals', ['created_at'])

    # Audit trail
    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_activity_log_affiliate_id', 'activity_log', ['affiliate_id'])
    op.create_index('ix_activity_log_action', 'activity_log', ['action'])
    op.create_index('ix_activity_log_ip_address', 'activity_log', ['ip_address'])
    op.create_index('ix_activity_log_created_at', 'activity_log', ['created_at'])

    # Diagnostics
    op.create_table(
        'system_errors',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('error_type', sa.String(50), nullable=False, server_default='unknown_error'),
        sa.Column('severity', sa.String(20), nullable=False, server_default='error'),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('stack_trace', sa.Text(), nullable=True),
        sa.Column('source', sa.String(100), nullable=True),
        sa.Column('endpoint', sa.String(255), nullable=True),
        sa.Column('affiliate_id', sa.Integer(), nullable=True),
        sa.Column('order_id', sa.String(64), nullable=True),
        sa.Column('payout_id', sa.Integer(), nullable=True),
        sa.Column('request_payload', sa.JSON(), nullable=True),
        sa.Column('response_payload', sa.JSON(), nullable=True),
        sa.Column('http_status', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('resolved', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_by', sa.String(255), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_system_errors_error_type', 'system_errors', ['error_type'])
    op.create_index('ix_system_errors_severity', 'system_errors', ['severity'])
    op.create_index('ix_system_errors_affiliate_id', 'system_errors', ['affiliate_id'])
    op.create_index('ix_system_errors_resolved', 'system_errors', ['resolved'])
    op.create_index('ix_system_errors_created_at', 'system_errors', ['created_at'])

    # Manual review queue
    op.create_table(
        'manual_review_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('kind', sa.String(50), nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=True),
        sa.Column('referral_id', sa.Integer(), nullable=True),
        sa.Column('payout_id', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('resolved', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_by', sa.String(255), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_manual_review_items_kind', 'manual_review_items', ['kind'])
    op.create_index('ix_manual_review_items_affiliate_id', 'manual_review_items', ['affiliate_id'])
    op.create_index('ix_manual_review_items_resolved', 'manual_review_items', ['resolved'])

    # Default tier ladder
    op.bulk_insert(
        tiers,
        [
            {'name': 'Initiate', 'slug': 'initiate', 'min_referrals': 0,
             'commission_rate': '0.1500', 'description': 'Where every journey begins',
             'sort_order': 1},
            {'name': 'Adept', 'slug': 'adept', 'min_referrals': 6,
             'commission_rate': '0.2000', 'description': 'Proven storytellers',
             'sort_order': 2},
            {'name': 'Inner Circle', 'slug': 'inner_circle', 'min_referrals': 16,
             'commission_rate': '0.2500', 'description': 'The trusted few',
             'sort_order': 3},
        ],
    )


def downgrade() -> None:
    op.drop_table('manual_review_items')
    op.drop_table('system_errors')
    op.drop_table('activity_log')
    op.drop_table('referrals')
    op.drop_table('payouts')
    op.drop_table('referred_customers')
    op.drop_table('affiliates')
    op.drop_table('tiers')
