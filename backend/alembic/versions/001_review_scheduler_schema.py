"""Review scheduler schema

Creates the item-level and workbook-level review tables:
- mastery_states / review_history
- workbook_review_schedules / workbook_review_history

State tables carry a `version` column used for optimistic concurrency.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ===========================================
    # Item-level review state
    # ===========================================
    op.create_table(
        "mastery_states",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column("problem_id", sa.String(64), nullable=False),
        sa.Column("problem_set_id", sa.String(64), nullable=True),
        # Scheduling state
        sa.Column("mastery_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("scheduled_date", sa.Date(), nullable=True),
        sa.Column("stage_table_version", sa.String(32), nullable=False),
        # Audit
        sa.Column("consecutive_correct", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_review_date", sa.Date(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "problem_id", name="uq_mastery_states_user_problem"),
        sa.CheckConstraint(
            "mastery_level BETWEEN 0 AND 4", name="ck_mastery_states_level_range"
        ),
        sa.CheckConstraint(
            "(mastery_level = 4) = (scheduled_date IS NULL)",
            name="ck_mastery_states_completed_has_no_date",
        ),
    )
    op.create_index(
        "ix_mastery_states_user_scheduled",
        "mastery_states",
        ["user_id", "scheduled_date"],
    )

    op.create_table(
        "review_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "mastery_state_id",
            sa.String(36),
            sa.ForeignKey("mastery_states.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("problem_id", sa.String(64), nullable=False),
        # Review details
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("time_spent", sa.Integer(), nullable=True),
        sa.Column("confidence_level", sa.Integer(), nullable=True),
        sa.Column("difficulty_perceived", sa.Integer(), nullable=True),
        sa.Column(
            "occurred_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("review_date", sa.Date(), nullable=False),
        # Transition
        sa.Column("level_before", sa.Integer(), nullable=False),
        sa.Column("level_after", sa.Integer(), nullable=False),
        sa.Column("scheduled_date_after", sa.Date(), nullable=True),
        sa.Column("idempotency_key", sa.String(128), nullable=True),
        sa.UniqueConstraint(
            "mastery_state_id",
            "idempotency_key",
            name="uq_review_history_state_idempotency_key",
        ),
    )
    op.create_index(
        "ix_review_history_user_review_date",
        "review_history",
        ["user_id", "review_date"],
    )

    # ===========================================
    # Workbook-level review state
    # ===========================================
    op.create_table(
        "workbook_review_schedules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column("problem_set_id", sa.String(64), nullable=False),
        sa.Column("review_stage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_review_date", sa.Date(), nullable=False),
        sa.Column("stage_table_version", sa.String(32), nullable=False),
        sa.Column("total_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "user_id", "problem_set_id", name="uq_workbook_schedules_user_set"
        ),
        sa.CheckConstraint("review_stage >= 0", name="ck_workbook_schedules_stage"),
    )
    op.create_index(
        "ix_workbook_schedules_user_next",
        "workbook_review_schedules",
        ["user_id", "next_review_date"],
    )

    op.create_table(
        "workbook_review_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "schedule_id",
            sa.String(36),
            sa.ForeignKey("workbook_review_schedules.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("problem_set_id", sa.String(64), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column(
            "occurred_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("review_date", sa.Date(), nullable=False),
        sa.Column("stage_before", sa.Integer(), nullable=False),
        sa.Column("stage_after", sa.Integer(), nullable=False),
        sa.Column("next_review_date_after", sa.Date(), nullable=False),
        sa.Column("idempotency_key", sa.String(128), nullable=True),
        sa.UniqueConstraint(
            "schedule_id",
            "idempotency_key",
            name="uq_workbook_history_schedule_idempotency_key",
        ),
    )


def downgrade() -> None:
    op.drop_table("workbook_review_history")
    op.drop_index("ix_workbook_schedules_user_next")
    op.drop_table("workbook_review_schedules")
    op.drop_index("ix_review_history_user_review_date")
    op.drop_table("review_history")
    op.drop_index("ix_mastery_states_user_scheduled")
    op.drop_table("mastery_states")
