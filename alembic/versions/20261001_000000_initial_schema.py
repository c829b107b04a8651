"""initial schema: workers, cost centers, machines, maintenance, reports, cost rules

Revision ID: 20261001_000000
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261001_000000'
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text('CURRENT_TIMESTAMP')


def upgrade():
    op.create_table(
        'workers',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('dni', sa.String(length=20), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('expected_hours', sa.Float(), nullable=True),
        sa.Column('requires_report', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('dni')
    )
    op.create_index(op.f('ix_workers_id'), 'workers', ['id'], unique=False)
    op.create_index(op.f('ix_workers_name'), 'workers', ['name'], unique=False)

    op.create_table(
        'cost_centers',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('company_code', sa.String(length=50), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('selectable_for_reports', sa.Boolean(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cost_centers_id'), 'cost_centers', ['id'], unique=False)
    op.create_index(op.f('ix_cost_centers_code'), 'cost_centers', ['code'], unique=True)

    op.create_table(
        'sub_centers',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('center_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('tracks_production', sa.Boolean(), nullable=False),
        sa.Column('production_field', sa.String(length=20), nullable=True),
        sa.ForeignKeyConstraint(['center_id'], ['cost_centers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sub_centers_id'), 'sub_centers', ['id'], unique=False)
    op.create_index(op.f('ix_sub_centers_center_id'), 'sub_centers', ['center_id'], unique=False)

    op.create_table(
        'machines',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('cost_center_id', sa.Integer(), nullable=False),
        sa.Column('sub_center_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('company_code', sa.String(length=50), nullable=True),
        sa.Column('current_hours', sa.Float(), nullable=False),
        sa.Column('requires_hours', sa.Boolean(), nullable=False),
        sa.Column('admin_expenses', sa.Boolean(), nullable=False),
        sa.Column('transport_expenses', sa.Boolean(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('selectable_for_reports', sa.Boolean(), nullable=False),
        sa.Column('linked_to_production', sa.Boolean(), nullable=False),
        sa.Column('responsible_worker_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['cost_center_id'], ['cost_centers.id']),
        sa.ForeignKeyConstraint(['sub_center_id'], ['sub_centers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['responsible_worker_id'], ['workers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_machines_id'), 'machines', ['id'], unique=False)
    op.create_index(op.f('ix_machines_cost_center_id'), 'machines', ['cost_center_id'], unique=False)
    op.create_index(op.f('ix_machines_company_code'), 'machines', ['company_code'], unique=False)

    op.create_table(
        'maintenance_definitions',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('machine_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('maintenance_type', sa.String(length=10), nullable=False),
        sa.Column('tasks', sa.Text(), nullable=True),
        sa.Column('interval_hours', sa.Float(), nullable=True),
        sa.Column('warning_hours', sa.Float(), nullable=True),
        sa.Column('last_maintenance_hours', sa.Float(), nullable=True),
        sa.Column('interval_months', sa.Integer(), nullable=True),
        sa.Column('next_date', sa.Date(), nullable=True),
        sa.Column('last_maintenance_date', sa.Date(), nullable=True),
        sa.Column('notified_warning', sa.Boolean(), nullable=False),
        sa.Column('notified_overdue', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['machine_id'], ['machines.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_maintenance_definitions_id'), 'maintenance_definitions', ['id'], unique=False)
    op.create_index(op.f('ix_maintenance_definitions_machine_id'), 'maintenance_definitions', ['machine_id'], unique=False)

    op.create_table(
        'operation_logs',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('worker_id', sa.Integer(), nullable=False),
        sa.Column('machine_id', sa.Integer(), nullable=False),
        sa.Column('hours_at_execution', sa.Float(), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('motor_oil', sa.Float(), nullable=True),
        sa.Column('hydraulic_oil', sa.Float(), nullable=True),
        sa.Column('coolant', sa.Float(), nullable=True),
        sa.Column('breakdown_cause', sa.Text(), nullable=True),
        sa.Column('breakdown_solution', sa.Text(), nullable=True),
        sa.Column('repairer_id', sa.Integer(), nullable=True),
        sa.Column('maintenance_type', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('materials', sa.Text(), nullable=True),
        sa.Column('maintenance_def_id', sa.Integer(), nullable=True),
        sa.Column('fuel_litres', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['worker_id'], ['workers.id']),
        sa.ForeignKeyConstraint(['machine_id'], ['machines.id']),
        sa.ForeignKeyConstraint(['repairer_id'], ['workers.id']),
        sa.ForeignKeyConstraint(['maintenance_def_id'], ['maintenance_definitions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_operation_logs_id'), 'operation_logs', ['id'], unique=False)
    op.create_index(op.f('ix_operation_logs_date'), 'operation_logs', ['date'], unique=False)
    op.create_index(op.f('ix_operation_logs_worker_id'), 'operation_logs', ['worker_id'], unique=False)
    op.create_index(op.f('ix_operation_logs_machine_id'), 'operation_logs', ['machine_id'], unique=False)
    op.create_index(op.f('ix_operation_logs_type'), 'operation_logs', ['type'], unique=False)
    op.create_index('idx_operation_logs_machine_date', 'operation_logs', ['machine_id', 'date'], unique=False)

    op.create_table(
        'personal_reports',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('worker_id', sa.Integer(), nullable=False),
        sa.Column('hours', sa.Float(), nullable=False),
        sa.Column('cost_center_id', sa.Integer(), nullable=True),
        sa.Column('machine_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['worker_id'], ['workers.id']),
        sa.ForeignKeyConstraint(['cost_center_id'], ['cost_centers.id']),
        sa.ForeignKeyConstraint(['machine_id'], ['machines.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_personal_reports_id'), 'personal_reports', ['id'], unique=False)
    op.create_index(op.f('ix_personal_reports_date'), 'personal_reports', ['date'], unique=False)
    op.create_index(op.f('ix_personal_reports_worker_id'), 'personal_reports', ['worker_id'], unique=False)
    op.create_index(op.f('ix_personal_reports_cost_center_id'), 'personal_reports', ['cost_center_id'], unique=False)
    op.create_index(op.f('ix_personal_reports_machine_id'), 'personal_reports', ['machine_id'], unique=False)

    op.create_table(
        'cp_daily_reports',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('worker_id', sa.Integer(), nullable=False),
        sa.Column('crusher_start', sa.Float(), nullable=False),
        sa.Column('crusher_end', sa.Float(), nullable=False),
        sa.Column('mills_start', sa.Float(), nullable=False),
        sa.Column('mills_end', sa.Float(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('ai_analysis', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['worker_id'], ['workers.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cp_daily_reports_id'), 'cp_daily_reports', ['id'], unique=False)
    op.create_index(op.f('ix_cp_daily_reports_date'), 'cp_daily_reports', ['date'], unique=False)

    op.create_table(
        'cr_daily_reports',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('worker_id', sa.Integer(), nullable=False),
        sa.Column('washing_start', sa.Float(), nullable=False),
        sa.Column('washing_end', sa.Float(), nullable=False),
        sa.Column('trituration_start', sa.Float(), nullable=False),
        sa.Column('trituration_end', sa.Float(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('ai_analysis', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['worker_id'], ['workers.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cr_daily_reports_id'), 'cr_daily_reports', ['id'], unique=False)
    op.create_index(op.f('ix_cr_daily_reports_date'), 'cr_daily_reports', ['date'], unique=False)

    op.create_table(
        'cp_weekly_plans',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('monday_date', sa.Date(), nullable=False),
        sa.Column('monday_hours', sa.Float(), nullable=False),
        sa.Column('tuesday_hours', sa.Float(), nullable=False),
        sa.Column('wednesday_hours', sa.Float(), nullable=False),
        sa.Column('thursday_hours', sa.Float(), nullable=False),
        sa.Column('friday_hours', sa.Float(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cp_weekly_plans_id'), 'cp_weekly_plans', ['id'], unique=False)
    op.create_index(op.f('ix_cp_weekly_plans_monday_date'), 'cp_weekly_plans', ['monday_date'], unique=True)

    op.create_table(
        'specific_cost_rules',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('machine_origin_id', sa.Integer(), nullable=False),
        sa.Column('target_center_id', sa.Integer(), nullable=False),
        sa.Column('target_machine_id', sa.Integer(), nullable=True),
        sa.Column('percentage', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['machine_origin_id'], ['machines.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['target_center_id'], ['cost_centers.id']),
        sa.ForeignKeyConstraint(['target_machine_id'], ['machines.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_specific_cost_rules_id'), 'specific_cost_rules', ['id'], unique=False)
    op.create_index(op.f('ix_specific_cost_rules_machine_origin_id'), 'specific_cost_rules', ['machine_origin_id'], unique=False)

    op.create_table(
        'system_logs',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('level', sa.String(length=20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('module', sa.String(length=200), nullable=True),
        sa.Column('function', sa.String(length=200), nullable=True),
        sa.Column('line_number', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=100), nullable=True),
        sa.Column('event_category', sa.String(length=100), nullable=True),
        sa.Column('extra_data', sa.Text(), nullable=True),
        sa.Column('exception_type', sa.String(length=200), nullable=True),
        sa.Column('exception_message', sa.Text(), nullable=True),
        sa.Column('stack_trace', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_system_logs_id'), 'system_logs', ['id'], unique=False)
    op.create_index(op.f('ix_system_logs_level'), 'system_logs', ['level'], unique=False)
    op.create_index(op.f('ix_system_logs_event_type'), 'system_logs', ['event_type'], unique=False)
    op.create_index(op.f('ix_system_logs_event_category'), 'system_logs', ['event_category'], unique=False)
    op.create_index(op.f('ix_system_logs_created_at'), 'system_logs', ['created_at'], unique=False)


def downgrade():
    op.drop_table('system_logs')
    op.drop_table('specific_cost_rules')
    op.drop_table('cp_weekly_plans')
    op.drop_table('cr_daily_reports')
    op.drop_table('cp_daily_reports')
    op.drop_table('personal_reports')
    op.drop_table('operation_logs')
    op.drop_table('maintenance_definitions')
    op.drop_table('machines')
    op.drop_table('sub_centers')
    op.drop_table('cost_centers')
    op.drop_table('workers')
