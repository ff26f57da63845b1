import logging
import os
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


LOGGER = logging.getLogger(__name__)

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""


class User(Base):
    """Represents a Telegram user studying with the bot."""

    __tablename__ = "users"

    chat_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    preferred_translation: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        server_onupdate=func.now(),
    )
    studies: Mapped[list["VerseStudy"]] = relationship(
        "VerseStudy",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class BibleBook(Base):
    """Canonical book row mirrored from the static catalog."""

    __tablename__ = "bible_books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    short_name: Mapped[str] = mapped_column(String(16), nullable=False)
    testament: Mapped[str] = mapped_column(String(2), nullable=False)
    book_order: Mapped[int] = mapped_column(Integer, nullable=False)
    chapters: Mapped[int] = mapped_column(Integer, nullable=False)


class BibleVerse(Base):
    """Cached verse text for a translation."""

    __tablename__ = "bible_verses"
    __table_args__ = (
        UniqueConstraint(
            "book_id",
            "chapter",
            "verse_number",
            "end_verse",
            "translation",
            name="uq_bible_verses_location_translation",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bible_books.id", ondelete="CASCADE"), nullable=False
    )
    chapter: Mapped[int] = mapped_column(Integer, nullable=False)
    verse_number: Mapped[int] = mapped_column(Integer, nullable=False)
    end_verse: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    translation: Mapped[str] = mapped_column(String(16), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class VerseStudy(Base):
    """A user's study of one verse, from interpretation through review."""

    __tablename__ = "verse_studies"
    __table_args__ = (
        UniqueConstraint("chat_id", "verse_reference", name="uq_verse_studies_user_reference"),
        Index("ix_verse_studies_chat_id_next_review_date", "chat_id", "next_review_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.chat_id", ondelete="CASCADE"), nullable=False
    )
    verse_reference: Mapped[str] = mapped_column(String(64), nullable=False)
    book_name: Mapped[str] = mapped_column(String(64), nullable=False)
    book_id: Mapped[int] = mapped_column(Integer, ForeignKey("bible_books.id"), nullable=False)
    chapter: Mapped[int] = mapped_column(Integer, nullable=False)
    verse_number: Mapped[int] = mapped_column(Integer, nullable=False)
    end_verse: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    verse_text: Mapped[str] = mapped_column(Text, nullable=False)
    translation: Mapped[str] = mapped_column(String(16), nullable=False)
    user_interpretation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ai_feedback: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    structured_explanation: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    quiz_questions: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    quiz_answers: Mapped[Optional[list[Any]]] = mapped_column(JSON, nullable=True)
    quiz_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=STATUS_IN_PROGRESS,
        server_default=text(f"'{STATUS_IN_PROGRESS}'"),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    review_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    next_review_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        server_onupdate=func.now(),
    )
    user: Mapped["User"] = relationship("User", back_populates="studies")
    reviews: Mapped[list["ReviewSession"]] = relationship(
        "ReviewSession",
        back_populates="verse_study",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ReviewSession(Base):
    """A later attempt to re-explain a verse, compared against the first one."""

    __tablename__ = "review_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    verse_study_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("verse_studies.id", ondelete="CASCADE"), nullable=False
    )
    new_interpretation: Mapped[str] = mapped_column(Text, nullable=False)
    comparison: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    improvement_score: Mapped[float] = mapped_column(Float, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    verse_study: Mapped["VerseStudy"] = relationship("VerseStudy", back_populates="reviews")


class UserProgress(Base):
    """Per-user progress snapshot; ``version`` guards concurrent writers."""

    __tablename__ = "user_progress"

    chat_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.chat_id", ondelete="CASCADE"), primary_key=True, autoincrement=False
    )
    total_studies: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    average_quiz_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    last_study_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    verses_studied: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    books_studied: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        server_onupdate=func.now(),
    )


def _expand_database_url(raw_url: str) -> str:
    """Expand environment variables inside the configured database URL."""
    return os.path.expandvars(raw_url)


def get_database_url() -> str:
    """Return the configured database URL or raise if missing."""
    raw_url = os.getenv("DATABASE_URL")
    if not raw_url:
        raise RuntimeError("DATABASE_URL environment variable is required to connect to the database.")
    return _expand_database_url(raw_url)


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Create (and cache) the async engine for the application's database."""
    echo = os.getenv("SQLALCHEMY_ECHO", "false").lower() in {"1", "true", "yes"}
    return create_async_engine(get_database_url(), echo=echo)


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return a cached async session factory bound to the engine."""
    return async_sessionmaker(get_engine(), expire_on_commit=False)


def should_run_migrations() -> bool:
    """Determine whether migrations should be executed during startup."""
    flag = os.getenv("RUN_MIGRATIONS_ON_STARTUP", "true").lower()
    return flag in {"1", "true", "yes", "on"}


def _build_alembic_config() -> Config:
    project_root = Path(__file__).resolve().parents[2]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", get_database_url())
    return alembic_cfg


def run_migrations(target: str = "head") -> None:
    """Run Alembic migrations up to the specified target revision."""
    command.upgrade(_build_alembic_config(), target)


def run_migrations_if_needed(target: str = "head") -> None:
    """Run migrations when the startup flag is enabled."""
    if not should_run_migrations():
        LOGGER.info("Skipping migrations because RUN_MIGRATIONS_ON_STARTUP is disabled.")
        return

    LOGGER.info("Applying database migrations up to %s.", target)
    run_migrations(target)
    LOGGER.info("Database schema is up to date.")
