"""Coordinates verse lookup, generation, quiz scoring, scheduling and progress."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db import STATUS_COMPLETED, VerseStudy
from src.db.bible import cache_verse, ensure_bible_books, get_cached_verse
from src.db.progress import load_progress, save_progress
from src.db.studies import (
    get_or_create_study,
    get_user_study,
    list_completion_dates,
    list_due_studies,
    record_review_session,
)
from src.db.users import set_preferred_translation, upsert_user
from src.services.text_generation import TextGenerator
from src.services.verse_source import BibleApiClient, VersePassage
from src.study.content import (
    EXPLANATION,
    FEEDBACK,
    QUIZ,
    REVIEW,
    Answer,
    InterpretationFeedback,
    Quiz,
    ReviewComparison,
    StructuredExplanation,
    parse_json_object,
    score_quiz,
)
from src.study.content_guard import ContentGuard
from src.study.errors import (
    ConcurrentUpdateConflict,
    GenerationFailed,
    InterpretationTooShort,
    InvalidStudyState,
    PolicyViolation,
    ProgressUpdateFailed,
    StudyNotFound,
    VerseUnavailable,
)
from src.study.progress import (
    CompletedStudy,
    ProgressSnapshot,
    apply_completed_study,
    apply_review,
    refresh_streaks,
)
from src.study.prompts import (
    build_explanation_prompt,
    build_feedback_prompt,
    build_quiz_prompt,
    build_review_prompt,
)
from src.study.references import resolve_reference
from src.study.scheduling import calculate_review_schedule
from src.study.streaks import to_study_day


LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TRANSLATION = "KJV"
MIN_INTERPRETATION_LENGTH = 10


@dataclass(slots=True)
class StudyContent:
    """Guarded content generated for a submitted interpretation."""

    study_id: int
    feedback: InterpretationFeedback
    explanation: StructuredExplanation
    quiz: Quiz


@dataclass(slots=True)
class QuizOutcome:
    study_id: int
    score: float
    correct_count: int
    total_questions: int
    next_review_date: datetime
    interval_days: int
    is_review: bool
    progress: ProgressSnapshot


class StudyWorkflow:
    """Runs the study steps for a user against the database and collaborators."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        generator: TextGenerator,
        guard: ContentGuard,
        verse_source: BibleApiClient,
        *,
        default_translation: str = DEFAULT_TRANSLATION,
        generation_timeout: float = 30.0,
        generation_attempts: int = 2,
        progress_update_attempts: int = 3,
        quiz_question_count: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self._generator = generator
        self._guard = guard
        self._verse_source = verse_source
        self._default_translation = default_translation.upper()
        self._generation_timeout = generation_timeout
        self._generation_attempts = max(1, generation_attempts)
        self._progress_update_attempts = max(1, progress_update_attempts)
        self._quiz_question_count = quiz_question_count

    async def initialize(self) -> None:
        """Seed the canonical book table."""
        async with self._session_factory() as session:
            async with session.begin():
                await ensure_bible_books(session)

    async def remember_user(
        self,
        chat_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await upsert_user(session, chat_id, first_name, last_name)

    async def set_translation(self, chat_id: int, translation: str) -> str:
        """Store the translation used for the chat's future studies."""
        async with self._session_factory() as session:
            async with session.begin():
                user = await set_preferred_translation(session, chat_id, translation)
                return user.preferred_translation

    async def lookup_verse(self, raw_reference: str, translation: Optional[str] = None) -> VersePassage:
        reference = resolve_reference(raw_reference)
        translation = (translation or self._default_translation).upper()

        async with self._session_factory() as session:
            cached = await get_cached_verse(session, reference, translation)
        if cached is not None:
            return VersePassage(reference=reference, text=cached.text, translation=cached.translation)

        passage = await self._verse_source.fetch_verse(reference, translation)
        if passage is None:
            raise VerseUnavailable(reference.citation, translation)

        async with self._session_factory() as session:
            async with session.begin():
                await cache_verse(session, reference, translation, passage.text)
        return passage

    async def start_study(
        self,
        chat_id: int,
        raw_reference: str,
        translation: Optional[str] = None,
    ) -> VerseStudy:
        """Begin (or resume) a study of the cited verse."""
        if translation is None:
            async with self._session_factory() as session:
                async with session.begin():
                    user = await upsert_user(session, chat_id)
                    translation = user.preferred_translation

        passage = await self.lookup_verse(raw_reference, translation)

        async with self._session_factory() as session:
            async with session.begin():
                await upsert_user(session, chat_id)
                study, created = await get_or_create_study(
                    session, chat_id, passage.reference, passage.text, passage.translation
                )
        if created:
            LOGGER.info("Chat %s started studying %s.", chat_id, study.verse_reference)
        return study

    async def get_study(self, chat_id: int, study_id: int) -> VerseStudy:
        async with self._session_factory() as session:
            study = await get_user_study(session, chat_id, study_id)
        if study is None:
            raise StudyNotFound(study_id)
        return study

    async def submit_interpretation(self, chat_id: int, study_id: int, interpretation: str) -> StudyContent:
        """Generate feedback, explanation and quiz; store them only if all pass the guard."""
        interpretation = self._require_interpretation(interpretation)
        study = await self.get_study(chat_id, study_id)
        if study.status == STATUS_COMPLETED:
            raise InvalidStudyState(study_id, "the study is already completed")

        citation = study.verse_reference
        reference = resolve_reference(citation)

        feedback = await self._generate(
            FEEDBACK,
            build_feedback_prompt(citation, study.verse_text, interpretation),
            InterpretationFeedback.from_payload,
        )
        explanation = await self._generate(
            EXPLANATION,
            build_explanation_prompt(citation, study.verse_text, reference.book_info, reference.chapter),
            StructuredExplanation.from_payload,
        )
        quiz = await self._generate(
            QUIZ,
            build_quiz_prompt(citation, study.verse_text, explanation, self._quiz_question_count),
            Quiz.from_payload,
        )

        async with self._session_factory() as session:
            async with session.begin():
                current = await get_user_study(session, chat_id, study_id)
                if current is None:
                    raise StudyNotFound(study_id)
                if current.status == STATUS_COMPLETED:
                    raise InvalidStudyState(study_id, "the study was completed meanwhile")
                current.user_interpretation = interpretation
                current.ai_feedback = feedback.to_dict()
                current.structured_explanation = explanation.to_dict()
                current.quiz_questions = quiz.to_dict()["questions"]
                current.quiz_answers = None
                current.updated_at = datetime.now(timezone.utc)

        return StudyContent(study_id=study_id, feedback=feedback, explanation=explanation, quiz=quiz)

    async def submit_quiz(
        self,
        chat_id: int,
        study_id: int,
        answers: Sequence[Optional[Answer]],
        now: Optional[datetime] = None,
    ) -> QuizOutcome:
        """Score the quiz, schedule the next review and fold the result into progress."""
        if now is None:
            now = datetime.now(timezone.utc)

        async def complete(session: AsyncSession) -> QuizOutcome:
            return await self._complete_quiz(session, chat_id, study_id, list(answers), now)

        return await self._with_progress_retry(chat_id, complete)

    async def submit_review(self, chat_id: int, study_id: int, interpretation: str) -> ReviewComparison:
        """Compare a fresh explanation of a completed study with the original one."""
        interpretation = self._require_interpretation(interpretation)
        study = await self.get_study(chat_id, study_id)
        if study.status != STATUS_COMPLETED or not study.structured_explanation:
            raise InvalidStudyState(study_id, "only completed studies can be reviewed")

        comparison = await self._generate(
            REVIEW,
            build_review_prompt(
                study.verse_reference,
                study.verse_text,
                study.user_interpretation,
                interpretation,
                study.structured_explanation.get("summary", ""),
            ),
            ReviewComparison.from_payload,
        )

        async with self._session_factory() as session:
            async with session.begin():
                current = await get_user_study(session, chat_id, study_id)
                if current is None:
                    raise StudyNotFound(study_id)
                await record_review_session(
                    session,
                    current,
                    interpretation,
                    comparison.to_dict(),
                    comparison.improvement_score,
                )
        return comparison

    async def get_progress(self, chat_id: int, today: Optional[date] = None) -> ProgressSnapshot:
        """Return the snapshot with streaks brought up to date."""

        async def refresh(session: AsyncSession) -> ProgressSnapshot:
            await upsert_user(session, chat_id)
            snapshot, version = await load_progress(session, chat_id)
            refreshed = refresh_streaks(snapshot, await list_completion_dates(session, chat_id), today=today)
            if refreshed is not snapshot:
                await save_progress(session, chat_id, refreshed, version)
            return refreshed

        return await self._with_progress_retry(chat_id, refresh)

    async def due_reviews(self, chat_id: int, now: Optional[datetime] = None) -> List[VerseStudy]:
        async with self._session_factory() as session:
            return await list_due_studies(session, chat_id, now=now)

    def _require_interpretation(self, interpretation: str) -> str:
        cleaned = interpretation.strip()
        if len(cleaned) < MIN_INTERPRETATION_LENGTH:
            raise InterpretationTooShort(MIN_INTERPRETATION_LENGTH)
        return cleaned

    async def _generate(self, kind: str, prompt: str, parse: Callable[[Dict], T]) -> T:
        """Call the generator with a timeout; guard and parse its output.

        A rejected attempt is discarded whole. The last error is raised once
        the attempt budget is used up.
        """
        last_error: Exception = GenerationFailed(kind, "no attempt was made")
        for attempt in range(1, self._generation_attempts + 1):
            try:
                raw_text = await asyncio.wait_for(
                    self._generator.generate(prompt), timeout=self._generation_timeout
                )
            except asyncio.TimeoutError:
                LOGGER.warning("Generating %s timed out (attempt %d).", kind, attempt)
                last_error = GenerationFailed(kind, f"timed out after {self._generation_timeout:g}s")
                continue
            except Exception as exc:
                LOGGER.warning("Generating %s failed (attempt %d).", kind, attempt, exc_info=True)
                last_error = GenerationFailed(kind, str(exc) or exc.__class__.__name__)
                continue

            try:
                payload = parse_json_object(raw_text, kind)
                self._guard.enforce(payload, label=kind)
                return parse(payload)
            except PolicyViolation as exc:
                LOGGER.warning("Rejected generated %s (attempt %d): %s", kind, attempt, exc.violations)
                last_error = exc
            except GenerationFailed as exc:
                LOGGER.warning("Discarded malformed %s (attempt %d): %s", kind, attempt, exc.reason)
                last_error = exc

        raise last_error

    async def _with_progress_retry(
        self,
        chat_id: int,
        operation: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        for attempt in range(1, self._progress_update_attempts + 1):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        return await operation(session)
            except ConcurrentUpdateConflict:
                LOGGER.warning(
                    "Progress update for chat %s conflicted (attempt %d/%d).",
                    chat_id,
                    attempt,
                    self._progress_update_attempts,
                )
        raise ProgressUpdateFailed(chat_id, self._progress_update_attempts)

    async def _complete_quiz(
        self,
        session: AsyncSession,
        chat_id: int,
        study_id: int,
        answers: List[Optional[Answer]],
        now: datetime,
    ) -> QuizOutcome:
        study = await get_user_study(session, chat_id, study_id)
        if study is None:
            raise StudyNotFound(study_id)
        if not study.quiz_questions:
            raise InvalidStudyState(study_id, "the quiz has not been generated yet")

        result = score_quiz(Quiz.from_stored(study.quiz_questions), answers)
        schedule = calculate_review_schedule(
            last_review_date=now,
            review_count=study.review_count,
            quiz_score=result.score,
        )
        is_review = study.status == STATUS_COMPLETED

        study.quiz_answers = answers
        study.quiz_score = result.score
        study.next_review_date = schedule.next_review_at
        study.review_count += 1
        study.updated_at = now
        if not is_review:
            study.status = STATUS_COMPLETED
            study.completed_at = now

        snapshot, version = await load_progress(session, chat_id)
        if is_review:
            updated = apply_review(snapshot)
        else:
            completed = CompletedStudy(
                reference=resolve_reference(study.verse_reference),
                score=result.score,
                completed_at=now,
            )
            history = await list_completion_dates(session, chat_id)
            updated = apply_completed_study(snapshot, completed, history, today=to_study_day(now))
        await save_progress(session, chat_id, updated, version)

        LOGGER.info(
            "Chat %s scored %.0f on %s; next review in %d day(s).",
            chat_id,
            result.score,
            study.verse_reference,
            schedule.interval_days,
        )
        return QuizOutcome(
            study_id=study_id,
            score=result.score,
            correct_count=result.correct_count,
            total_questions=result.total_questions,
            next_review_date=schedule.next_review_at,
            interval_days=schedule.interval_days,
            is_review=is_review,
            progress=updated,
        )
