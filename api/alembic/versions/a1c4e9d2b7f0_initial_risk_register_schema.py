"""initial_risk_register_schema

Revision ID: a1c4e9d2b7f0
Revises:
Create Date: 2025-06-02 09:14:37.512048

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e9d2b7f0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Master data
    op.create_table(
        'org_units',
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('hierarchy_level', sa.String(length=100), nullable=True,
                  comment='Free-text position in the organization, e.g. Directorate, Division'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('unit_id')
    )
    op.create_index(op.f('ix_org_units_code'), 'org_units', ['code'], unique=True)

    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('unit_id', sa.Integer(), nullable=True, comment='Organizational unit the user belongs to'),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('ADMIN', 'DIRECTOR', 'RISK_MANAGER', 'RISK_OWNER', 'AUDITOR')",
            name='chk_user_role'
        ),
        sa.ForeignKeyConstraint(['unit_id'], ['org_units.unit_id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('user_id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_unit_id'), 'users', ['unit_id'], unique=False)

    op.create_table(
        'risk_taxonomies',
        sa.Column('taxonomy_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=255), nullable=False, comment='Top-level risk category'),
        sa.Column('subcategory', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('taxonomy_id'),
        sa.UniqueConstraint('category', 'subcategory', name='uq_taxonomy_category_subcategory')
    )
    op.create_index(op.f('ix_risk_taxonomies_category'), 'risk_taxonomies', ['category'], unique=False)

    op.create_table(
        'risk_criteria',
        sa.Column('criteria_id', sa.Integer(), nullable=False),
        sa.Column('criteria_type', sa.String(length=20), nullable=False),
        sa.Column('scale_label', sa.String(length=100), nullable=False,
                  comment="Display label, e.g. 'Signifikan' or 'Hampir Pasti'"),
        sa.Column('value', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("criteria_type IN ('IMPACT', 'PROBABILITY')", name='chk_criteria_type'),
        sa.CheckConstraint('value >= 1 AND value <= 5', name='chk_criteria_value_range'),
        sa.PrimaryKeyConstraint('criteria_id'),
        sa.UniqueConstraint('criteria_type', 'value', name='uq_criteria_type_value')
    )

    op.create_table(
        'strategic_objectives',
        sa.Column('objective_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('objective', sa.Text(), nullable=False),
        sa.Column('strategy', sa.Text(), nullable=True),
        sa.Column('expected_outcome', sa.Text(), nullable=True),
        sa.Column('risk_value', sa.String(length=255), nullable=True, comment='Stated risk appetite value'),
        sa.Column('risk_limit', sa.String(length=255), nullable=True, comment='Stated risk tolerance limit'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['unit_id'], ['org_units.unit_id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('objective_id')
    )
    op.create_index(op.f('ix_strategic_objectives_unit_id'), 'strategic_objectives', ['unit_id'], unique=False)

    # Risk register
    op.create_table(
        'risks',
        sa.Column('risk_id', sa.Integer(), nullable=False),
        sa.Column('risk_number', sa.String(length=50), nullable=False,
                  comment='Business identifier, e.g. RISK-0001'),
        sa.Column('name', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('objective_id', sa.Integer(), nullable=False),
        sa.Column('owner_unit_id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['objective_id'], ['strategic_objectives.objective_id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['owner_unit_id'], ['org_units.unit_id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['category_id'], ['risk_taxonomies.taxonomy_id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('risk_id')
    )
    op.create_index(op.f('ix_risks_risk_number'), 'risks', ['risk_number'], unique=True)
    op.create_index(op.f('ix_risks_objective_id'), 'risks', ['objective_id'], unique=False)
    op.create_index(op.f('ix_risks_owner_unit_id'), 'risks', ['owner_unit_id'], unique=False)
    op.create_index(op.f('ix_risks_category_id'), 'risks', ['category_id'], unique=False)

    op.create_table(
        'risk_assessments',
        sa.Column('assessment_id', sa.Integer(), nullable=False),
        sa.Column('risk_id', sa.Integer(), nullable=False),
        sa.Column('assessment_type', sa.String(length=20), nullable=False),
        sa.Column('impact_value', sa.String(length=255), nullable=True, comment='Free-form impact magnitude'),
        sa.Column('impact_scale', sa.Integer(), nullable=False),
        sa.Column('probability_value', sa.String(length=255), nullable=True,
                  comment="Free-form probability, e.g. '60%'"),
        sa.Column('probability_scale', sa.Integer(), nullable=False),
        sa.Column('exposure', sa.Integer(), nullable=False, comment='probability_scale x impact_scale'),
        sa.Column('level', sa.String(length=20), nullable=False),
        sa.Column('qualitative_impact_note', sa.Text(), nullable=True, comment='Inherent assessments only'),
        sa.Column('target_residual', sa.String(length=255), nullable=True, comment='Residual assessments only'),
        *_timestamps(),
        sa.CheckConstraint("assessment_type IN ('INHERENT', 'RESIDUAL')", name='chk_assessment_type'),
        sa.CheckConstraint('impact_scale >= 1 AND impact_scale <= 5', name='chk_impact_scale'),
        sa.CheckConstraint('probability_scale >= 1 AND probability_scale <= 5', name='chk_probability_scale'),
        sa.CheckConstraint(
            "level IN ('VERY_LOW', 'LOW', 'MODERATE', 'HIGH', 'VERY_HIGH')",
            name='chk_assessment_level'
        ),
        sa.ForeignKeyConstraint(['risk_id'], ['risks.risk_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('assessment_id'),
        sa.UniqueConstraint('risk_id', 'assessment_type', name='uq_risk_assessment_type')
    )
    op.create_index(op.f('ix_risk_assessments_risk_id'), 'risk_assessments', ['risk_id'], unique=False)

    op.create_table(
        'existing_controls',
        sa.Column('control_id', sa.Integer(), nullable=False),
        sa.Column('risk_id', sa.Integer(), nullable=False),
        sa.Column('control_type', sa.String(length=255), nullable=False,
                  comment='e.g. Preventive, Detective, Corrective'),
        sa.Column('impact_description', sa.Text(), nullable=True),
        sa.Column('effectiveness_rating', sa.String(length=30), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "effectiveness_rating IN ('VERY_EFFECTIVE', 'EFFECTIVE', 'FAIRLY_EFFECTIVE', "
            "'LESS_EFFECTIVE', 'INEFFECTIVE')",
            name='chk_control_effectiveness'
        ),
        sa.ForeignKeyConstraint(['risk_id'], ['risks.risk_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('control_id')
    )
    op.create_index(op.f('ix_existing_controls_risk_id'), 'existing_controls', ['risk_id'], unique=False)

    op.create_table(
        'key_risk_indicators',
        sa.Column('kri_id', sa.Integer(), nullable=False),
        sa.Column('risk_id', sa.Integer(), nullable=False),
        sa.Column('indicator_name', sa.String(length=500), nullable=False),
        sa.Column('unit_of_measure', sa.String(length=100), nullable=False),
        sa.Column('threshold_category', sa.String(length=50), nullable=True,
                  comment='e.g. Safe, Caution, Danger'),
        sa.Column('threshold_value', sa.Numeric(precision=18, scale=4), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['risk_id'], ['risks.risk_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('kri_id')
    )
    op.create_index(op.f('ix_key_risk_indicators_risk_id'), 'key_risk_indicators', ['risk_id'], unique=False)

    op.create_table(
        'treatment_plans',
        sa.Column('treatment_id', sa.Integer(), nullable=False),
        sa.Column('risk_id', sa.Integer(), nullable=False),
        sa.Column('pic_id', sa.Integer(), nullable=False, comment='Person in charge'),
        sa.Column('treatment_option', sa.String(length=20), nullable=True),
        sa.Column('treatment_plan', sa.Text(), nullable=False),
        sa.Column('output', sa.Text(), nullable=True),
        sa.Column('cost', sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column('timeline_months', sa.Integer(), nullable=True),
        sa.Column('program_type', sa.String(length=255), nullable=True, comment='Budget program classification'),
        *_timestamps(),
        sa.CheckConstraint(
            "treatment_option IS NULL OR treatment_option IN ('MITIGATE', 'ACCEPT', 'AVOID', 'TRANSFER')",
            name='chk_treatment_option'
        ),
        sa.CheckConstraint('cost IS NULL OR cost >= 0', name='chk_treatment_cost'),
        sa.CheckConstraint('timeline_months IS NULL OR timeline_months >= 1', name='chk_treatment_timeline'),
        sa.ForeignKeyConstraint(['risk_id'], ['risks.risk_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['pic_id'], ['users.user_id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('treatment_id')
    )
    op.create_index(op.f('ix_treatment_plans_risk_id'), 'treatment_plans', ['risk_id'], unique=False)
    op.create_index(op.f('ix_treatment_plans_pic_id'), 'treatment_plans', ['pic_id'], unique=False)

    op.create_table(
        'treatment_realizations',
        sa.Column('realization_id', sa.Integer(), nullable=False),
        sa.Column('treatment_id', sa.Integer(), nullable=False),
        sa.Column('period', sa.Date(), nullable=False),
        sa.Column('kri_realization', sa.Text(), nullable=True),
        sa.Column('plan_realization', sa.Text(), nullable=True),
        sa.Column('output_realization', sa.Text(), nullable=True),
        sa.Column('cost_realization', sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column('absorption_pct', sa.Numeric(precision=5, scale=2), nullable=True,
                  comment='Budget absorption percentage'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('progress', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('PLANNING', 'ON_TRACK', 'IN_PROGRESS', 'DELAYED', 'COMPLETED')",
            name='chk_realization_status'
        ),
        sa.ForeignKeyConstraint(['treatment_id'], ['treatment_plans.treatment_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('realization_id')
    )
    op.create_index(
        op.f('ix_treatment_realizations_treatment_id'), 'treatment_realizations', ['treatment_id'], unique=False
    )

    # Reporting
    op.create_table(
        'report_templates',
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('report_type', sa.String(length=30), nullable=False),
        sa.Column('template', sa.Text(), nullable=False, comment="JSON document with a 'sections' list"),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('template_id')
    )
    op.create_index(op.f('ix_report_templates_report_type'), 'report_templates', ['report_type'], unique=False)

    op.create_table(
        'report_history',
        sa.Column('history_id', sa.Integer(), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('report_type', sa.String(length=30), nullable=False),
        sa.Column('parameters', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('file_name', sa.String(length=500), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('generated_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint("status IN ('GENERATING', 'COMPLETED', 'FAILED')", name='chk_report_history_status'),
        sa.ForeignKeyConstraint(['template_id'], ['report_templates.template_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['generated_by_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('history_id')
    )
    op.create_index(op.f('ix_report_history_template_id'), 'report_history', ['template_id'], unique=False)

    op.create_table(
        'scheduled_reports',
        sa.Column('scheduled_report_id', sa.Integer(), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cron_expression', sa.String(length=100), nullable=False,
                  comment='Five-field crontab expression'),
        sa.Column('recipient_emails', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_run', sa.DateTime(), nullable=True),
        sa.Column('next_run', sa.DateTime(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['template_id'], ['report_templates.template_id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('scheduled_report_id')
    )
    op.create_index(
        op.f('ix_scheduled_reports_template_id'), 'scheduled_reports', ['template_id'], unique=False
    )

    op.create_table(
        'report_executions',
        sa.Column('execution_id', sa.Integer(), nullable=False),
        sa.Column('scheduled_report_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('file_path', sa.String(length=1000), nullable=True),
        sa.Column('email_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_sent_at', sa.DateTime(), nullable=True),
        sa.Column('execution_time', sa.Float(), nullable=True, comment='Seconds'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.CheckConstraint("status IN ('RUNNING', 'COMPLETED', 'FAILED')", name='chk_report_execution_status'),
        sa.ForeignKeyConstraint(
            ['scheduled_report_id'], ['scheduled_reports.scheduled_report_id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('execution_id')
    )
    op.create_index(
        op.f('ix_report_executions_scheduled_report_id'), 'report_executions', ['scheduled_report_id'],
        unique=False
    )

    op.create_table(
        'email_templates',
        sa.Column('email_template_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('html_content', sa.Text(), nullable=False),
        sa.Column('text_content', sa.Text(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('email_template_id')
    )
    op.create_index(op.f('ix_email_templates_name'), 'email_templates', ['name'], unique=False)

    # Audit trail
    op.create_table(
        'audit_logs',
        sa.Column('log_id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('log_id')
    )
    op.create_index(op.f('ix_audit_logs_log_id'), 'audit_logs', ['log_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_type'), 'audit_logs', ['entity_type'], unique=False)


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table('audit_logs')
    op.drop_table('email_templates')
    op.drop_table('report_executions')
    op.drop_table('scheduled_reports')
    op.drop_table('report_history')
    op.drop_table('report_templates')
    op.drop_table('treatment_realizations')
    op.drop_table('treatment_plans')
    op.drop_table('key_risk_indicators')
    op.drop_table('existing_controls')
    op.drop_table('risk_assessments')
    op.drop_table('risks')
    op.drop_table('strategic_objectives')
    op.drop_table('risk_criteria')
    op.drop_table('users')
    op.drop_table('risk_taxonomies')
    op.drop_table('org_units')
