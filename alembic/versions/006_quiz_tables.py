"""Quiz questions and answers, participant details, quick purchase ordering.

Revision ID: 006_quiz_tables
Revises: 005_content_tables
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "006_quiz_tables"
down_revision: str | None = "005_content_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_PARTICIPANT_COLUMNS = (
    sa.Column("full_name", sa.String(128), nullable=True),
    sa.Column("phone", sa.String(32), nullable=True),
    sa.Column("betting_experience", sa.String(32), nullable=True),
    sa.Column("referral_code", sa.String(16), nullable=True),
    sa.Column("questions_answered", sa.Integer(), nullable=False, server_default="0"),
)


def upgrade() -> None:
    """Create quiz question/answer tables and extend participations."""
    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("options", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("correct_answer", sa.String(256), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    for column in _PARTICIPANT_COLUMNS:
        op.add_column("quiz_participations", column)
    op.create_index("ix_quiz_participations_user_created", "quiz_participations", ["user_id", "created_at"])

    op.create_table(
        "quiz_answers",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "participation_id",
            sa.BigInteger(),
            sa.ForeignKey("quiz_participations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "question_id", sa.BigInteger(), sa.ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("selected_answer", sa.String(256), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("participation_id", "question_id", name="uq_quiz_answers_participation_id"),
    )

    op.add_column("quick_purchases", sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"))


def downgrade() -> None:
    op.drop_column("quick_purchases", "display_order")
    op.drop_table("quiz_answers")
    op.drop_index("ix_quiz_participations_user_created", table_name="quiz_participations")
    for column in reversed(_PARTICIPANT_COLUMNS):
        op.drop_column("quiz_participations", column.name)
    op.drop_table("quiz_questions")
