"""Tenant schema migration manifest

Ordered schema-change steps applied to every tenant schema. Each step gets an
alembic Operations object bound to the tenant connection, so steps read like
alembic revisions. Append new steps with the next version number; never edit
or reorder a step that has shipped.
"""

from dataclasses import dataclass
from typing import Callable, Tuple

import sqlalchemy as sa
from alembic.operations import Operations


@dataclass(frozen=True)
class TenantMigration:
    version: int
    description: str
    upgrade: Callable[[Operations], None]


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def _create_employees(op: Operations) -> None:
    op.create_table(
        'employees',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('employee_code', sa.String(50), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('reporting_manager_id', sa.Uuid(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['reporting_manager_id'], ['employees.id']),
    )
    op.create_index('ix_employees_email', 'employees', ['email'], unique=True)


def _create_territories(op: Operations) -> None:
    op.create_table(
        'territories',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),  # region, state, city
        sa.Column('parent_territory_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['parent_territory_id'], ['territories.id']),
    )
    op.create_table(
        'employee_territories',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), nullable=False),
        sa.Column('territory_id', sa.Uuid(), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('assigned_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['territory_id'], ['territories.id'], ondelete='CASCADE'),
    )


def _create_customers(op: Operations) -> None:
    op.create_table(
        'hospitals',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(100), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('pincode', sa.String(20), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('territory_id', sa.Uuid(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['territory_id'], ['territories.id']),
    )
    op.create_table(
        'doctors',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('designation', sa.String(100), nullable=True),
        sa.Column('specialization', sa.String(100), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('qualification', sa.String(100), nullable=True),
        sa.Column('experience_years', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by_id', sa.Uuid(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by_id'], ['employees.id']),
    )
    op.create_table(
        'doctor_hospital_associations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('doctor_id', sa.Uuid(), nullable=False),
        sa.Column('hospital_id', sa.Uuid(), nullable=False),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['hospital_id'], ['hospitals.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('doctor_id', 'hospital_id', name='uq_doctor_hospital'),
    )
    op.create_table(
        'chemists',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='CHEMIST'),  # CHEMIST, STOCKIST
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('pincode', sa.String(20), nullable=True),
        sa.Column('visiting_hours', sa.String(100), nullable=True),
        sa.Column('territory_id', sa.Uuid(), nullable=True),
        sa.Column('created_by_id', sa.Uuid(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['territory_id'], ['territories.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['employees.id']),
    )


def _create_tasks_and_orders(op: Operations) -> None:
    op.create_table(
        'tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('assignee_id', sa.Uuid(), nullable=False),
        sa.Column('created_by_id', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='PENDING'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['assignee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['employees.id']),
    )
    op.create_index('ix_tasks_assignee_id', 'tasks', ['assignee_id'])
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('chemist_id', sa.Uuid(), nullable=False),
        sa.Column('created_by_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='DRAFT'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('expected_delivery_date', sa.Date(), nullable=True),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['chemist_id'], ['chemists.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['employees.id']),
    )
    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('drug_name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
    )


def _create_daily_call_reports(op: Operations) -> None:
    op.create_table(
        'daily_call_reports',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), nullable=False),
        sa.Column('report_date', sa.Date(), nullable=False),
        sa.Column('customer_type', sa.String(20), nullable=False),  # DOCTOR, CHEMIST
        sa.Column('customer_id', sa.Uuid(), nullable=False),
        sa.Column('products_discussed', sa.Text(), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='DRAFT'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
    )
    op.create_index(
        'ix_daily_call_reports_employee_date', 'daily_call_reports', ['employee_id', 'report_date']
    )


def _add_employee_profile_pic(op: Operations) -> None:
    op.add_column('employees', sa.Column('profile_pic', sa.String(500), nullable=True))


MANIFEST: Tuple[TenantMigration, ...] = (
    TenantMigration(1, "create employees", _create_employees),
    TenantMigration(2, "create territories", _create_territories),
    TenantMigration(3, "create hospitals, doctors and chemists", _create_customers),
    TenantMigration(4, "create tasks and orders", _create_tasks_and_orders),
    TenantMigration(5, "create daily call reports", _create_daily_call_reports),
    TenantMigration(6, "add employees.profile_pic", _add_employee_profile_pic),
)
