"""Create canonical book and cached verse tables."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261002_0002"
down_revision: Union[str, None] = "20261001_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "bible_books",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False, unique=True),
        sa.Column("short_name", sa.String(length=16), nullable=False),
        sa.Column("testament", sa.String(length=2), nullable=False),
        sa.Column("book_order", sa.Integer(), nullable=False),
        sa.Column("chapters", sa.Integer(), nullable=False),
    )

    op.create_table(
        "bible_verses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "book_id",
            sa.Integer(),
            sa.ForeignKey("bible_books.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("chapter", sa.Integer(), nullable=False),
        sa.Column("verse_number", sa.Integer(), nullable=False),
        sa.Column("end_verse", sa.Integer(), nullable=True),
        sa.Column("translation", sa.String(length=16), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "book_id",
            "chapter",
            "verse_number",
            "end_verse",
            "translation",
            name="uq_bible_verses_location_translation",
        ),
    )


def downgrade() -> None:
    op.drop_table("bible_verses")
    op.drop_table("bible_books")
