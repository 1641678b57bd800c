"""initial_schema

Revision ID: 3c1d7a9e5b20
Revises:
Create Date: 2026-10-19 09:14:02.118342

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1d7a9e5b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the job board schema."""
    op.create_table(
        'profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('account_type', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('company_name', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('classification', sa.String(), nullable=True),
        sa.Column('specialization', sa.String(), nullable=True),
        sa.Column('years_experience', sa.Integer(), nullable=True),
        sa.Column('resume_key', sa.String(), nullable=True),
        sa.Column('resume_uploaded_at', sa.DateTime(), nullable=True),
        sa.Column('stripe_customer_id', sa.String(), nullable=True),
        sa.Column('has_used_free_job', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_profiles_id'), 'profiles', ['id'], unique=False)
    op.create_index(op.f('ix_profiles_email'), 'profiles', ['email'], unique=True)
    op.create_index(op.f('ix_profiles_location'), 'profiles', ['location'], unique=False)
    op.create_index(op.f('ix_profiles_stripe_customer_id'), 'profiles', ['stripe_customer_id'], unique=False)

    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employer_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('company', sa.String(), nullable=False),
        sa.Column('region', sa.String(), nullable=False),
        sa.Column('hourly_rate', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('requirements', sa.Text(), nullable=True),
        sa.Column('benefits', sa.Text(), nullable=True),
        sa.Column('duration', sa.String(), nullable=True),
        sa.Column('contact_email', sa.String(), nullable=False),
        sa.Column('contact_phone', sa.String(), nullable=True),
        sa.Column('job_type', sa.String(), nullable=False),
        sa.Column('primary_industry', sa.String(), nullable=True),
        sa.Column('classification', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('deactivated_at', sa.DateTime(), nullable=True),
        sa.Column('is_free_job', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('free_job_expires_at', sa.DateTime(), nullable=True),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('featured_until', sa.DateTime(), nullable=True),
        sa.Column('is_urgent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('urgent_until', sa.DateTime(), nullable=True),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['employer_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_jobs_id'), 'jobs', ['id'], unique=False)
    op.create_index(op.f('ix_jobs_employer_id'), 'jobs', ['employer_id'], unique=False)
    op.create_index(op.f('ix_jobs_region'), 'jobs', ['region'], unique=False)
    op.create_index(op.f('ix_jobs_primary_industry'), 'jobs', ['primary_industry'], unique=False)
    op.create_index(op.f('ix_jobs_status'), 'jobs', ['status'], unique=False)
    op.create_index(op.f('ix_jobs_created_at'), 'jobs', ['created_at'], unique=False)
    op.create_index('idx_jobs_employer_status', 'jobs', ['employer_id', 'status'], unique=False)

    op.create_table(
        'applications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('applicant_id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=False),
        sa.Column('classification', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('applied_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id']),
        sa.ForeignKeyConstraint(['applicant_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', 'applicant_id', name='uq_applications_job_applicant'),
    )
    op.create_index(op.f('ix_applications_id'), 'applications', ['id'], unique=False)
    op.create_index(op.f('ix_applications_job_id'), 'applications', ['job_id'], unique=False)
    op.create_index(op.f('ix_applications_applicant_id'), 'applications', ['applicant_id'], unique=False)

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('plan_type', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('active_jobs_limit', sa.Integer(), nullable=True),
        sa.Column('monthly_credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stripe_customer_id', sa.String(), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(), nullable=True),
        sa.Column('current_period_start', sa.DateTime(), nullable=True),
        sa.Column('current_period_end', sa.DateTime(), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_subscription_id'),
    )
    op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=False)
    op.create_index(op.f('ix_subscriptions_stripe_customer_id'), 'subscriptions', ['stripe_customer_id'], unique=False)
    op.create_index(op.f('ix_subscriptions_created_at'), 'subscriptions', ['created_at'], unique=False)
    # At most one active subscription per user
    op.create_index(
        'uq_subscriptions_one_active_per_user',
        'subscriptions',
        ['user_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'credit_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('monthly_credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('purchased_credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_monthly_refresh', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index(op.f('ix_credit_balances_id'), 'credit_balances', ['id'], unique=False)

    op.create_table(
        'credit_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('monthly_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('purchased_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('reference', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_credit_transactions_id'), 'credit_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_credit_transactions_user_id'), 'credit_transactions', ['user_id'], unique=False)
    op.create_index(op.f('ix_credit_transactions_created_at'), 'credit_transactions', ['created_at'], unique=False)
    op.create_index('idx_credit_tx_user_created', 'credit_transactions', ['user_id', 'created_at'], unique=False)

    op.create_table(
        'upgrade_prompts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('prompt_type', sa.String(), nullable=False),
        sa.Column('triggered_at', sa.DateTime(), nullable=False),
        sa.Column('shown_at', sa.DateTime(), nullable=True),
        sa.Column('action_taken', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', 'prompt_type', name='uq_upgrade_prompts_job_type'),
    )
    op.create_index(op.f('ix_upgrade_prompts_id'), 'upgrade_prompts', ['id'], unique=False)
    op.create_index(op.f('ix_upgrade_prompts_user_id'), 'upgrade_prompts', ['user_id'], unique=False)

    op.create_table(
        'job_feature_purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('feature_type', sa.String(), nullable=False),
        sa.Column('stripe_session_id', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_session_id'),
    )
    op.create_index(op.f('ix_job_feature_purchases_id'), 'job_feature_purchases', ['id'], unique=False)
    op.create_index(op.f('ix_job_feature_purchases_user_id'), 'job_feature_purchases', ['user_id'], unique=False)
    op.create_index(op.f('ix_job_feature_purchases_job_id'), 'job_feature_purchases', ['job_id'], unique=False)

    op.create_table(
        'credit_purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('package_type', sa.String(), nullable=False),
        sa.Column('credits_purchased', sa.Integer(), nullable=False),
        sa.Column('amount_paid', sa.Integer(), nullable=False),
        sa.Column('stripe_session_id', sa.String(), nullable=False),
        sa.Column('purchased_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_session_id'),
    )
    op.create_index(op.f('ix_credit_purchases_id'), 'credit_purchases', ['id'], unique=False)
    op.create_index(op.f('ix_credit_purchases_user_id'), 'credit_purchases', ['user_id'], unique=False)

    for table, constraint in (
        ('profile_unlocks', 'uq_profile_unlocks_pair'),
        ('resume_unlocks', 'uq_resume_unlocks_pair'),
    ):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('employer_id', sa.Integer(), nullable=False),
            sa.Column('job_seeker_id', sa.Integer(), nullable=False),
            sa.Column('unlocked_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['employer_id'], ['profiles.id']),
            sa.ForeignKeyConstraint(['job_seeker_id'], ['profiles.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('employer_id', 'job_seeker_id', name=constraint),
        )
        op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)
        op.create_index(op.f(f'ix_{table}_employer_id'), table, ['employer_id'], unique=False)
        op.create_index(op.f(f'ix_{table}_job_seeker_id'), table, ['job_seeker_id'], unique=False)


def downgrade() -> None:
    """Drop the job board schema."""
    for table in (
        'resume_unlocks',
        'profile_unlocks',
        'credit_purchases',
        'job_feature_purchases',
        'upgrade_prompts',
        'credit_transactions',
        'credit_balances',
        'subscriptions',
        'applications',
        'jobs',
        'profiles',
    ):
        op.drop_table(table)
