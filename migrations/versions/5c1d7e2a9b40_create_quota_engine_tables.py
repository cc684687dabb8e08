"""create_quota_engine_tables

Создание таблиц учёта квот: работодатели, работники, письма о найме,
разрешения на въезд, направления, разрешения на трудоустройство,
инциденты пропажи работников.

Revision ID: 5c1d7e2a9b40
Revises:
Create Date: 2026-10-12 10:24:31.518204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1d7e2a9b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Создание таблиц движка квот."""

    # === 1. EMPLOYERS ===

    op.create_table(
        'employers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_name', sa.String(255), nullable=False),
        sa.Column('tax_id', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tax_id')
    )
    op.create_index('ix_employers_id', 'employers', ['id'])
    op.create_index('ix_employers_company_name', 'employers', ['company_name'])

    # === 2. WORKERS ===

    op.create_table(
        'workers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('english_name', sa.String(255), nullable=False),
        sa.Column('chinese_name', sa.String(255), nullable=True),
        sa.Column('nationality', sa.String(8), nullable=True),
        sa.Column('gender', sa.String(16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_workers_id', 'workers', ['id'])
    op.create_index('ix_workers_english_name', 'workers', ['english_name'])

    # === 3. RECRUITMENT_LETTERS ===

    op.create_table(
        'recruitment_letters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('letter_number', sa.String(100), nullable=False),
        sa.Column('employer_id', sa.Integer(), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('approved_quota', sa.Integer(), nullable=False),
        sa.Column('quota_male', sa.Integer(), server_default='0', nullable=False),
        sa.Column('quota_female', sa.Integer(), server_default='0', nullable=False),
        sa.Column('can_circulate', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('used_quota', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['employer_id'], ['employers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('approved_quota >= 0', name='ck_recruitment_letters_approved_quota'),
        sa.CheckConstraint('quota_male >= 0 AND quota_female >= 0', name='ck_recruitment_letters_gender_quota')
    )
    op.create_index('ix_recruitment_letters_id', 'recruitment_letters', ['id'])
    op.create_index('ix_recruitment_letters_letter_number', 'recruitment_letters', ['letter_number'], unique=True)
    op.create_index('ix_recruitment_letters_employer_id', 'recruitment_letters', ['employer_id'])

    op.execute("COMMENT ON COLUMN recruitment_letters.used_quota IS 'Кэш, всегда пересчитывается из deployments/runaway_records'")

    # === 4. ENTRY_PERMITS ===

    op.create_table(
        'entry_permits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('permit_number', sa.String(100), nullable=False),
        sa.Column('recruitment_letter_id', sa.Integer(), nullable=True),
        sa.Column('issue_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['recruitment_letter_id'], ['recruitment_letters.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_entry_permits_id', 'entry_permits', ['id'])
    op.create_index('ix_entry_permits_permit_number', 'entry_permits', ['permit_number'], unique=True)
    op.create_index('ix_entry_permits_recruitment_letter_id', 'entry_permits', ['recruitment_letter_id'])

    # === 5. DEPLOYMENTS ===

    op.create_table(
        'deployments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('worker_id', sa.Integer(), nullable=False),
        sa.Column('employer_id', sa.Integer(), nullable=False),
        sa.Column('recruitment_letter_id', sa.Integer(), nullable=True),
        sa.Column('entry_permit_id', sa.Integer(), nullable=True),
        sa.Column('source_type', sa.String(32), server_default='direct_hiring', nullable=False),
        sa.Column('status', sa.String(32), server_default='active', nullable=False),
        sa.Column('service_status', sa.String(32), server_default='active_service', nullable=False),
        sa.Column('job_type', sa.String(64), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('termination_reason', sa.String(64), nullable=True),
        sa.Column('termination_notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['worker_id'], ['workers.id']),
        sa.ForeignKeyConstraint(['employer_id'], ['employers.id']),
        sa.ForeignKeyConstraint(['recruitment_letter_id'], ['recruitment_letters.id']),
        sa.ForeignKeyConstraint(['entry_permit_id'], ['entry_permits.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_deployments_id', 'deployments', ['id'])
    op.create_index('ix_deployments_worker_id', 'deployments', ['worker_id'])
    op.create_index('ix_deployments_employer_id', 'deployments', ['employer_id'])
    op.create_index('ix_deployments_recruitment_letter_id', 'deployments', ['recruitment_letter_id'])
    op.create_index('ix_deployments_entry_permit_id', 'deployments', ['entry_permit_id'])
    op.create_index('ix_deployments_status', 'deployments', ['status'])

    # === 6. EMPLOYMENT_PERMITS ===

    op.create_table(
        'employment_permits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deployment_id', sa.Integer(), nullable=False),
        sa.Column('permit_number', sa.String(100), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('status', sa.String(32), server_default='ACTIVE', nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('receipt_number', sa.String(100), nullable=True),
        sa.Column('application_date', sa.Date(), nullable=True),
        sa.Column('fee_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('replaced_by_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['deployment_id'], ['deployments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['replaced_by_id'], ['employment_permits.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_employment_permits_id', 'employment_permits', ['id'])
    op.create_index('ix_employment_permits_deployment_id', 'employment_permits', ['deployment_id'])
    op.create_index('ix_employment_permits_permit_number', 'employment_permits', ['permit_number'])
    # Не более одного ACTIVE разрешения на направление
    op.create_index(
        'uq_employment_permits_active_per_deployment',
        'employment_permits',
        ['deployment_id'],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'")
    )

    # === 7. RUNAWAY_RECORDS ===

    op.create_table(
        'runaway_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deployment_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(32), server_default='reported_internally', nullable=False),
        sa.Column('missing_date', sa.Date(), nullable=False),
        sa.Column('three_day_countdown_start', sa.Date(), nullable=True),
        sa.Column('report_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('notification_date', sa.Date(), nullable=True),
        sa.Column('notification_number', sa.String(100), nullable=True),
        sa.Column('is_quota_frozen', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['deployment_id'], ['deployments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_runaway_records_id', 'runaway_records', ['id'])
    op.create_index('ix_runaway_records_deployment_id', 'runaway_records', ['deployment_id'])
    op.create_index('ix_runaway_records_status', 'runaway_records', ['status'])
    # Не более одного открытого инцидента на направление
    op.create_index(
        'uq_runaway_records_open_per_deployment',
        'runaway_records',
        ['deployment_id'],
        unique=True,
        postgresql_where=sa.text("status <> 'found'")
    )
    # Частичный индекс для подсчёта замороженных мест
    op.create_index(
        'idx_runaway_records_frozen',
        'runaway_records',
        ['deployment_id'],
        postgresql_where=sa.text('is_quota_frozen')
    )


def downgrade() -> None:
    """Удаление таблиц движка квот."""
    op.drop_index('idx_runaway_records_frozen', table_name='runaway_records')
    op.drop_index('uq_runaway_records_open_per_deployment', table_name='runaway_records')
    op.drop_index('ix_runaway_records_status', table_name='runaway_records')
    op.drop_index('ix_runaway_records_deployment_id', table_name='runaway_records')
    op.drop_index('ix_runaway_records_id', table_name='runaway_records')
    op.drop_table('runaway_records')

    op.drop_index('uq_employment_permits_active_per_deployment', table_name='employment_permits')
    op.drop_index('ix_employment_permits_permit_number', table_name='employment_permits')
    op.drop_index('ix_employment_permits_deployment_id', table_name='employment_permits')
    op.drop_index('ix_employment_permits_id', table_name='employment_permits')
    op.drop_table('employment_permits')

    op.drop_index('ix_deployments_status', table_name='deployments')
    op.drop_index('ix_deployments_entry_permit_id', table_name='deployments')
    op.drop_index('ix_deployments_recruitment_letter_id', table_name='deployments')
    op.drop_index('ix_deployments_employer_id', table_name='deployments')
    op.drop_index('ix_deployments_worker_id', table_name='deployments')
    op.drop_index('ix_deployments_id', table_name='deployments')
    op.drop_table('deployments')

    op.drop_index('ix_entry_permits_recruitment_letter_id', table_name='entry_permits')
    op.drop_index('ix_entry_permits_permit_number', table_name='entry_permits')
    op.drop_index('ix_entry_permits_id', table_name='entry_permits')
    op.drop_table('entry_permits')

    op.drop_index('ix_recruitment_letters_employer_id', table_name='recruitment_letters')
    op.drop_index('ix_recruitment_letters_letter_number', table_name='recruitment_letters')
    op.drop_index('ix_recruitment_letters_id', table_name='recruitment_letters')
    op.drop_table('recruitment_letters')

    op.drop_index('ix_workers_english_name', table_name='workers')
    op.drop_index('ix_workers_id', table_name='workers')
    op.drop_table('workers')

    op.drop_index('ix_employers_company_name', table_name='employers')
    op.drop_index('ix_employers_id', table_name='employers')
    op.drop_table('employers')
