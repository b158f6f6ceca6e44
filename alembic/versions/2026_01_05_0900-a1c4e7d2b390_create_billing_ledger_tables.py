"""create_billing_ledger_tables

Revision ID: a1c4e7d2b390
Revises:
Create Date: 2026-01-05 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7d2b390'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum labels are the member names, as SQLEnum stores them
user_role = sa.Enum('ADMIN', 'DOCTOR', 'STAFF', 'STUDENT', name='userrole')
treatment_status = sa.Enum('PLANNED', 'IN_PROGRESS', 'COMPLETED', 'CANCELED', name='treatmentstatus')
invoice_status = sa.Enum('DRAFT', 'SENT', 'PARTIAL', 'PAID', 'OVERDUE', 'CANCELED', name='invoicestatus')
payment_method = sa.Enum('CASH', 'CARD', 'BANK_TRANSFER', 'INSURANCE', 'OTHER', name='paymentmethod')
plan_status = sa.Enum('ACTIVE', 'COMPLETED', 'CANCELED', 'DEFAULTED', name='paymentplanstatus')
plan_frequency = sa.Enum('WEEKLY', 'BIWEEKLY', 'MONTHLY', name='planfrequency')
adjustment_type = sa.Enum('DISCOUNT', 'WRITE_OFF', 'REFUND', 'FEE', 'CORRECTION', name='adjustmenttype')
expense_category = sa.Enum(
    'SUPPLIES', 'EQUIPMENT', 'LAB_FEES', 'UTILITIES', 'RENT', 'SALARIES', 'MARKETING',
    'INSURANCE', 'MAINTENANCE', 'SOFTWARE', 'TRAINING', 'OTHER',
    name='expensecategory'
)


def upgrade() -> None:
    # Collaborator tables read by the production report
    op.create_table('users',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('first_name', sa.String(length=100), nullable=False),
    sa.Column('last_name', sa.String(length=100), nullable=False),
    sa.Column('email', sa.String(length=100), nullable=True),
    sa.Column('role', user_role, nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=False)

    op.create_table('patient_treatments',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('patient_id', sa.Integer(), nullable=False),
    sa.Column('treatment_code', sa.String(length=50), nullable=True),
    sa.Column('doctor_id', sa.Integer(), nullable=True),
    sa.Column('status', treatment_status, nullable=False),
    sa.Column('tooth_number', sa.Integer(), nullable=True),
    sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('scheduled_date', sa.Date(), nullable=True),
    sa.Column('completion_date', sa.Date(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(['doctor_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_patient_treatments_id'), 'patient_treatments', ['id'], unique=False)
    op.create_index(op.f('ix_patient_treatments_patient_id'), 'patient_treatments', ['patient_id'], unique=False)
    op.create_index(op.f('ix_patient_treatments_doctor_id'), 'patient_treatments', ['doctor_id'], unique=False)
    op.create_index(op.f('ix_patient_treatments_completion_date'), 'patient_treatments', ['completion_date'], unique=False)

    # Ledger tables
    op.create_table('invoices',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('invoice_number', sa.String(length=50), nullable=False),
    sa.Column('patient_id', sa.Integer(), nullable=False),
    sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('final_amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('paid_amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('status', invoice_status, nullable=False),
    sa.Column('issued_date', sa.Date(), nullable=False),
    sa.Column('due_date', sa.Date(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_invoices_id'), 'invoices', ['id'], unique=False)
    op.create_index(op.f('ix_invoices_invoice_number'), 'invoices', ['invoice_number'], unique=True)
    op.create_index(op.f('ix_invoices_patient_id'), 'invoices', ['patient_id'], unique=False)
    op.create_index(op.f('ix_invoices_status'), 'invoices', ['status'], unique=False)
    op.create_index(op.f('ix_invoices_issued_date'), 'invoices', ['issued_date'], unique=False)

    op.create_table('invoice_items',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('invoice_id', sa.Integer(), nullable=False),
    sa.Column('patient_treatment_id', sa.Integer(), nullable=True),
    sa.Column('description', sa.String(length=500), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_invoice_items_id'), 'invoice_items', ['id'], unique=False)
    op.create_index(op.f('ix_invoice_items_invoice_id'), 'invoice_items', ['invoice_id'], unique=False)

    op.create_table('payment_plans',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('invoice_id', sa.Integer(), nullable=False),
    sa.Column('patient_id', sa.Integer(), nullable=False),
    sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('down_payment', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('number_of_installments', sa.Integer(), nullable=False),
    sa.Column('installment_amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('frequency', plan_frequency, nullable=False),
    sa.Column('start_date', sa.Date(), nullable=False),
    sa.Column('status', plan_status, nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payment_plans_id'), 'payment_plans', ['id'], unique=False)
    op.create_index(op.f('ix_payment_plans_invoice_id'), 'payment_plans', ['invoice_id'], unique=False)
    op.create_index(op.f('ix_payment_plans_patient_id'), 'payment_plans', ['patient_id'], unique=False)
    op.create_index(op.f('ix_payment_plans_status'), 'payment_plans', ['status'], unique=False)

    op.create_table('payment_plan_installments',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('payment_plan_id', sa.Integer(), nullable=False),
    sa.Column('installment_number', sa.Integer(), nullable=False),
    sa.Column('due_date', sa.Date(), nullable=False),
    sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('paid_amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('is_paid', sa.Boolean(), nullable=False),
    sa.Column('paid_date', sa.Date(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.ForeignKeyConstraint(['payment_plan_id'], ['payment_plans.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('payment_plan_id', 'installment_number', name='uq_plan_installment_number')
    )
    op.create_index(op.f('ix_payment_plan_installments_id'), 'payment_plan_installments', ['id'], unique=False)
    op.create_index(
        op.f('ix_payment_plan_installments_payment_plan_id'), 'payment_plan_installments',
        ['payment_plan_id'], unique=False
    )

    op.create_table('payments',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('invoice_id', sa.Integer(), nullable=False),
    sa.Column('payment_plan_installment_id', sa.Integer(), nullable=True),
    sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('payment_date', sa.Date(), nullable=False),
    sa.Column('payment_method', payment_method, nullable=False),
    sa.Column('reference_number', sa.String(length=100), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('is_refunded', sa.Boolean(), nullable=False),
    sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('refund_reason', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
    sa.ForeignKeyConstraint(['payment_plan_installment_id'], ['payment_plan_installments.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)
    op.create_index(op.f('ix_payments_invoice_id'), 'payments', ['invoice_id'], unique=False)
    op.create_index(
        op.f('ix_payments_payment_plan_installment_id'), 'payments',
        ['payment_plan_installment_id'], unique=False
    )
    op.create_index(op.f('ix_payments_payment_date'), 'payments', ['payment_date'], unique=False)

    op.create_table('invoice_adjustments',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('invoice_id', sa.Integer(), nullable=False),
    sa.Column('type', adjustment_type, nullable=False),
    sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('reason', sa.Text(), nullable=False),
    sa.Column('applied_date', sa.Date(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_invoice_adjustments_id'), 'invoice_adjustments', ['id'], unique=False)
    op.create_index(op.f('ix_invoice_adjustments_invoice_id'), 'invoice_adjustments', ['invoice_id'], unique=False)
    op.create_index(op.f('ix_invoice_adjustments_applied_date'), 'invoice_adjustments', ['applied_date'], unique=False)

    op.create_table('expenses',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('description', sa.String(length=500), nullable=False),
    sa.Column('category', expense_category, nullable=False),
    sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('expense_date', sa.Date(), nullable=False),
    sa.Column('vendor', sa.String(length=200), nullable=True),
    sa.Column('reference_number', sa.String(length=100), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_expenses_id'), 'expenses', ['id'], unique=False)
    op.create_index(op.f('ix_expenses_category'), 'expenses', ['category'], unique=False)
    op.create_index(op.f('ix_expenses_expense_date'), 'expenses', ['expense_date'], unique=False)


def downgrade() -> None:
    op.drop_table('expenses')
    op.drop_table('invoice_adjustments')
    op.drop_table('payments')
    op.drop_table('payment_plan_installments')
    op.drop_table('payment_plans')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('patient_treatments')
    op.drop_table('users')

    # Enum types outlive their tables on PostgreSQL
    bind = op.get_bind()
    for enum_type in (
        expense_category, adjustment_type, plan_frequency, plan_status,
        payment_method, invoice_status, treatment_status, user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
