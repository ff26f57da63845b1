"""Create verse study, review session and progress tables."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261003_0003"
down_revision: Union[str, None] = "20261002_0002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "verse_studies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "chat_id",
            sa.BigInteger(),
            sa.ForeignKey("users.chat_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("verse_reference", sa.String(length=64), nullable=False),
        sa.Column("book_name", sa.String(length=64), nullable=False),
        sa.Column("book_id", sa.Integer(), sa.ForeignKey("bible_books.id"), nullable=False),
        sa.Column("chapter", sa.Integer(), nullable=False),
        sa.Column("verse_number", sa.Integer(), nullable=False),
        sa.Column("end_verse", sa.Integer(), nullable=True),
        sa.Column("verse_text", sa.Text(), nullable=False),
        sa.Column("translation", sa.String(length=16), nullable=False),
        sa.Column("user_interpretation", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("ai_feedback", sa.JSON(), nullable=True),
        sa.Column("structured_explanation", sa.JSON(), nullable=True),
        sa.Column("quiz_questions", sa.JSON(), nullable=True),
        sa.Column("quiz_answers", sa.JSON(), nullable=True),
        sa.Column("quiz_score", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'in_progress'")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("next_review_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("chat_id", "verse_reference", name="uq_verse_studies_user_reference"),
    )
    op.create_index(
        "ix_verse_studies_chat_id_next_review_date",
        "verse_studies",
        ["chat_id", "next_review_date"],
    )

    op.create_table(
        "review_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "verse_study_id",
            sa.Integer(),
            sa.ForeignKey("verse_studies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("new_interpretation", sa.Text(), nullable=False),
        sa.Column("comparison", sa.JSON(), nullable=False),
        sa.Column("improvement_score", sa.Float(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "user_progress",
        sa.Column(
            "chat_id",
            sa.BigInteger(),
            sa.ForeignKey("users.chat_id", ondelete="CASCADE"),
            primary_key=True,
            autoincrement=False,
            nullable=False,
        ),
        sa.Column("total_studies", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_reviews", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("average_quiz_score", sa.Float(), nullable=True),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_study_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verses_studied", sa.JSON(), nullable=False),
        sa.Column("books_studied", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("user_progress")
    op.drop_table("review_sessions")
    op.drop_index("ix_verse_studies_chat_id_next_review_date", table_name="verse_studies")
    op.drop_table("verse_studies")
