"""assessment engine tables

Revision ID: 0001_assessment_engine
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = '0001_assessment_engine'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        'assessments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('assessment_type', sa.String(length=20), nullable=False, server_default='exam'),
        sa.Column('course_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('passing_score', sa.Float(), nullable=False, server_default='60'),
        sa.Column('shuffle_questions', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('shuffle_options', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('show_results_immediately', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('show_correct_answers', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('allow_backtrack', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('question_per_page', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('available_from', sa.DateTime(timezone=True), nullable=True),
        sa.Column('available_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('updated_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.CheckConstraint("assessment_type in ('exam', 'quiz', 'cat')", name='assessment_type_values'),
        sa.CheckConstraint('duration_minutes >= 1', name='assessment_duration_positive'),
        sa.CheckConstraint('max_attempts >= 1', name='assessment_max_attempts_positive'),
        sa.CheckConstraint(
            'passing_score >= 0 and passing_score <= 100', name='assessment_passing_score_range'
        ),
        sa.CheckConstraint('question_per_page >= 1', name='assessment_question_per_page_positive'),
    )
    op.create_index('ix_assessments_title', 'assessments', ['title'])
    op.create_index('ix_assessments_course_id', 'assessments', ['course_id'])
    op.create_index('ix_assessments_is_active', 'assessments', ['is_active'])
    op.create_index('ix_assessments_type', 'assessments', ['assessment_type'])

    op.create_table(
        'assessment_questions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('assessment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('question_type', sa.String(length=30), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('points', sa.Float(), nullable=False, server_default='1'),
        sa.Column('time_limit_seconds', sa.Integer(), nullable=True),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('options', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('max_words', sa.Integer(), nullable=True),
        sa.Column('expected_keywords', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('case_sensitive', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('updated_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            "question_type in ('mcq', 'true_false', 'essay', 'short_answer')",
            name='assessment_question_type_values',
        ),
        sa.CheckConstraint('points > 0', name='assessment_question_points_positive'),
    )
    op.create_index('ix_assessment_questions_assessment_id', 'assessment_questions', ['assessment_id'])

    op.create_table(
        'assessment_attempts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('assessment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('attempt_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='in_progress'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('auto_submitted', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('last_saved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            'question_order', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        sa.Column(
            'option_order', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")
        ),
        sa.Column('furthest_page', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('max_score', sa.Float(), nullable=True),
        sa.Column('score_percent', sa.Float(), nullable=True),
        sa.Column('auto_graded_points', sa.Float(), nullable=True),
        sa.Column('manual_graded_points', sa.Float(), nullable=True),
        sa.Column('passed', sa.Boolean(), nullable=True),
        sa.Column('letter_grade', sa.String(length=4), nullable=True),
        sa.Column('grading_status', sa.String(length=30), nullable=False, server_default='pending'),
        sa.Column(
            'question_results',
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column('graded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint(
            'assessment_id', 'student_id', 'attempt_number', name='uq_assessment_attempt_student_number'
        ),
        sa.CheckConstraint(
            "status in ('in_progress', 'expired', 'submitted', 'graded')",
            name='assessment_attempt_status_values',
        ),
        sa.CheckConstraint(
            "grading_status in ('pending', 'auto_graded', 'pending_manual_grade', 'completed')",
            name='assessment_attempt_grading_status_values',
        ),
        sa.CheckConstraint('attempt_number >= 1', name='assessment_attempt_number_positive'),
    )
    op.create_index('ix_assessment_attempts_assessment_id', 'assessment_attempts', ['assessment_id'])
    op.create_index('ix_assessment_attempts_student_id', 'assessment_attempts', ['student_id'])
    op.create_index(
        'uq_assessment_attempts_one_in_progress',
        'assessment_attempts',
        ['assessment_id', 'student_id'],
        unique=True,
        postgresql_where=sa.text("status = 'in_progress'"),
    )

    op.create_table(
        'assessment_attempt_answers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('attempt_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('value', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('time_spent', sa.Integer(), nullable=True),
        sa.Column('saved_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['attempt_id'], ['assessment_attempts.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_assessment_attempt_answer_question'),
    )
    op.create_index('ix_assessment_attempt_answers_attempt_id', 'assessment_attempt_answers', ['attempt_id'])

    op.create_table(
        'assessment_manual_scores',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('attempt_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('points', sa.Float(), nullable=False),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('graded_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('graded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['attempt_id'], ['assessment_attempts.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_assessment_manual_score_question'),
        sa.CheckConstraint('points >= 0', name='assessment_manual_score_points_non_negative'),
    )

    op.create_table(
        'audit_log',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('actor_user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(length=150), nullable=False),
        sa.Column('entity_type', sa.String(length=120), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='success'),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])
    op.create_index('ix_audit_log_actor_user_id', 'audit_log', ['actor_user_id'])
    op.create_index('ix_audit_log_entity_type', 'audit_log', ['entity_type'])


def downgrade() -> None:
    op.drop_index('ix_audit_log_entity_type', table_name='audit_log')
    op.drop_index('ix_audit_log_actor_user_id', table_name='audit_log')
    op.drop_index('ix_audit_log_action', table_name='audit_log')
    op.drop_table('audit_log')
    op.drop_table('assessment_manual_scores')
    op.drop_index('ix_assessment_attempt_answers_attempt_id', table_name='assessment_attempt_answers')
    op.drop_table('assessment_attempt_answers')
    op.drop_index('uq_assessment_attempts_one_in_progress', table_name='assessment_attempts')
    op.drop_index('ix_assessment_attempts_student_id', table_name='assessment_attempts')
    op.drop_index('ix_assessment_attempts_assessment_id', table_name='assessment_attempts')
    op.drop_table('assessment_attempts')
    op.drop_index('ix_assessment_questions_assessment_id', table_name='assessment_questions')
    op.drop_table('assessment_questions')
    op.drop_index('ix_assessments_type', table_name='assessments')
    op.drop_index('ix_assessments_is_active', table_name='assessments')
    op.drop_index('ix_assessments_course_id', table_name='assessments')
    op.drop_index('ix_assessments_title', table_name='assessments')
    op.drop_table('assessments')
