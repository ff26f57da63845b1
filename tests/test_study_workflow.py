from __future__ import annotations

import asyncio
import json
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from src.services.verse_source import VersePassage
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
from src.study.references import VerseReference
from src.study.workflow import StudyWorkflow


NOW = datetime(2026, 7, 1, 10, 0, tzinfo=timezone.utc)
INTERPRETATION = "God loves the world and gives his Son so we can live."

FEEDBACK = {
    "affirmed": ["You saw that the gift flows from God's love."],
    "corrected": [],
    "gaps": ["Mention that life comes through resurrection."],
}
EXPLANATION = {
    "summary": "God's love is shown in giving his Son.",
    "paragraph": "John 3:16 tells of the Father's love and the life he offers through Jesus.",
    "literaryContext": "Part of the conversation with Nicodemus.",
    "greekHebrewWords": [{"original": "monogenes", "meaning": "unique, only"}],
    "pastoralApplication": "Rest in the Father's love.",
}
QUIZ = {
    "questions": [
        {
            "id": "q1",
            "question": "Who is the giver in this verse?",
            "type": "multiple_choice",
            "options": ["God the Father", "Moses", "Nicodemus"],
            "correctAnswer": 0,
        },
        {
            "id": "q2",
            "question": "What is promised to those who believe?",
            "type": "multiple_choice",
            "options": ["Wealth", "Everlasting life"],
            "correctAnswer": 1,
        },
    ]
}
COMPARISON = {
    "improvements": ["You now mention the resurrection."],
    "stillMissing": [],
    "retained": ["The gift flows from love."],
    "improvementScore": 0.5,
}


class _QueuedGenerator:
    def __init__(self, *responses: object) -> None:
        self._responses = deque(json.dumps(item) if isinstance(item, dict) else item for item in responses)
        self.prompts: list[str] = []

    def queue(self, *responses: object) -> None:
        self._responses.extend(json.dumps(item) if isinstance(item, dict) else item for item in responses)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._responses:
            raise AssertionError("Unexpected generator call during tests.")
        return self._responses.popleft()


class _SlowGenerator:
    async def generate(self, prompt: str) -> str:
        await asyncio.sleep(1)
        return json.dumps(FEEDBACK)


class _StubVerseSource:
    def __init__(self, text: Optional[str] = "For God so loved the world") -> None:
        self._text = text
        self.calls = 0

    async def fetch_verse(self, reference: VerseReference, translation: str) -> Optional[VersePassage]:
        self.calls += 1
        if self._text is None:
            return None
        return VersePassage(reference=reference, text=self._text, translation=translation.upper())


def _workflow(session_factory, generator, verse_source=None, **kwargs) -> StudyWorkflow:
    return StudyWorkflow(
        session_factory,
        generator,
        ContentGuard(["immortal soul", "god the son"]),
        verse_source or _StubVerseSource(),
        generation_timeout=kwargs.pop("generation_timeout", 1.0),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_full_study_then_review(session_factory) -> None:
    generator = _QueuedGenerator(FEEDBACK, EXPLANATION, QUIZ)
    workflow = _workflow(session_factory, generator)
    await workflow.initialize()

    study = await workflow.start_study(7, "john 3:16")
    assert study.verse_reference == "John 3:16"
    assert study.translation == "KJV"

    content = await workflow.submit_interpretation(7, study.id, INTERPRETATION)
    assert content.feedback.gaps == FEEDBACK["gaps"]
    assert len(content.quiz.questions) == 2
    assert INTERPRETATION in generator.prompts[0]

    outcome = await workflow.submit_quiz(7, study.id, [0, 1], now=NOW)
    assert outcome.score == 100
    assert outcome.is_review is False
    assert outcome.interval_days == 3
    assert outcome.next_review_date == NOW + timedelta(days=3)
    assert outcome.progress.total_studies == 1
    assert outcome.progress.average_quiz_score == 100
    assert outcome.progress.current_streak == 1
    assert outcome.progress.verses_studied == ("John 3:16",)

    assert await workflow.due_reviews(7, now=NOW + timedelta(days=1)) == []
    due = await workflow.due_reviews(7, now=NOW + timedelta(days=4))
    assert [item.id for item in due] == [study.id]

    generator.queue(COMPARISON)
    comparison = await workflow.submit_review(7, study.id, "Jesus was raised so we can share everlasting life.")
    assert comparison.improvement_score == 0.5

    retake = await workflow.submit_quiz(7, study.id, [0, 0], now=NOW + timedelta(days=4))
    assert retake.is_review is True
    assert retake.score == 50
    assert retake.interval_days == 1
    assert retake.progress.total_reviews == 1
    assert retake.progress.total_studies == 1
    assert retake.progress.average_quiz_score == 100

    stored = await workflow.get_study(7, study.id)
    assert stored.review_count == 2
    assert stored.quiz_score == 50
    assert stored.completed_at is not None


@pytest.mark.asyncio
async def test_verses_are_fetched_once_and_cached(session_factory) -> None:
    verse_source = _StubVerseSource()
    workflow = _workflow(session_factory, _QueuedGenerator(), verse_source)

    first = await workflow.lookup_verse("Romans 6:23")
    second = await workflow.lookup_verse("romans 6:23")

    assert verse_source.calls == 1
    assert first.text == second.text


@pytest.mark.asyncio
async def test_missing_verse_does_not_create_a_study(session_factory) -> None:
    workflow = _workflow(session_factory, _QueuedGenerator(), _StubVerseSource(text=None))

    with pytest.raises(VerseUnavailable):
        await workflow.start_study(8, "John 3:16")

    assert await workflow.due_reviews(8, now=NOW) == []


@pytest.mark.asyncio
async def test_preferred_translation_is_used_for_new_studies(session_factory) -> None:
    workflow = _workflow(session_factory, _QueuedGenerator())

    assert await workflow.set_translation(9, "web") == "WEB"
    study = await workflow.start_study(9, "Acts 2:24")

    assert study.translation == "WEB"


@pytest.mark.asyncio
async def test_policy_violation_leaves_study_untouched(session_factory) -> None:
    bad_explanation = dict(EXPLANATION, theologicalMeaning="Humans have an Immortal Soul.")
    generator = _QueuedGenerator(FEEDBACK, bad_explanation, bad_explanation)
    workflow = _workflow(session_factory, generator)
    study = await workflow.start_study(10, "John 3:16")

    with pytest.raises(PolicyViolation) as excinfo:
        await workflow.submit_interpretation(10, study.id, INTERPRETATION)

    assert excinfo.value.violations == ["immortal soul"]
    assert excinfo.value.label == "explanation"
    stored = await workflow.get_study(10, study.id)
    assert stored.ai_feedback is None
    assert stored.structured_explanation is None
    assert stored.quiz_questions is None
    assert stored.user_interpretation == ""


@pytest.mark.asyncio
async def test_malformed_output_is_retried(session_factory) -> None:
    generator = _QueuedGenerator("not json at all", FEEDBACK, EXPLANATION, QUIZ)
    workflow = _workflow(session_factory, generator)
    study = await workflow.start_study(11, "John 3:16")

    content = await workflow.submit_interpretation(11, study.id, INTERPRETATION)

    assert content.feedback.affirmed == FEEDBACK["affirmed"]
    assert len(generator.prompts) == 4


@pytest.mark.asyncio
async def test_generation_timeout_is_reported(session_factory) -> None:
    workflow = _workflow(session_factory, _SlowGenerator(), generation_timeout=0.01, generation_attempts=1)
    study = await workflow.start_study(12, "John 3:16")

    with pytest.raises(GenerationFailed) as excinfo:
        await workflow.submit_interpretation(12, study.id, INTERPRETATION)

    assert "timed out" in excinfo.value.reason
    assert (await workflow.get_study(12, study.id)).ai_feedback is None


@pytest.mark.asyncio
async def test_interpretation_and_ownership_checks(session_factory) -> None:
    workflow = _workflow(session_factory, _QueuedGenerator())
    study = await workflow.start_study(13, "John 3:16")

    with pytest.raises(InterpretationTooShort):
        await workflow.submit_interpretation(13, study.id, "  short  ")
    with pytest.raises(StudyNotFound):
        await workflow.get_study(14, study.id)
    with pytest.raises(InvalidStudyState):
        await workflow.submit_review(13, study.id, INTERPRETATION)
    with pytest.raises(InvalidStudyState):
        await workflow.submit_quiz(13, study.id, [0, 1], now=NOW)


@pytest.mark.asyncio
async def test_completed_study_rejects_a_new_interpretation(session_factory) -> None:
    workflow = _workflow(session_factory, _QueuedGenerator(FEEDBACK, EXPLANATION, QUIZ))
    study = await workflow.start_study(15, "John 3:16")
    await workflow.submit_interpretation(15, study.id, INTERPRETATION)
    await workflow.submit_quiz(15, study.id, [0, 1], now=NOW)

    with pytest.raises(InvalidStudyState):
        await workflow.submit_interpretation(15, study.id, INTERPRETATION)


@pytest.mark.asyncio
async def test_progress_conflict_is_retried_from_scratch(session_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    from src.study import workflow as workflow_module

    workflow = _workflow(session_factory, _QueuedGenerator(FEEDBACK, EXPLANATION, QUIZ))
    study = await workflow.start_study(16, "John 3:16")
    await workflow.submit_interpretation(16, study.id, INTERPRETATION)

    real_save = workflow_module.save_progress
    calls: list[int] = []

    async def flaky_save(session, chat_id, snapshot, expected_version):
        calls.append(expected_version)
        if len(calls) == 1:
            raise ConcurrentUpdateConflict(chat_id)
        return await real_save(session, chat_id, snapshot, expected_version)

    monkeypatch.setattr(workflow_module, "save_progress", flaky_save)

    outcome = await workflow.submit_quiz(16, study.id, [0, 1], now=NOW)

    assert len(calls) == 2
    assert outcome.progress.total_studies == 1
    assert (await workflow.get_study(16, study.id)).review_count == 1


@pytest.mark.asyncio
async def test_progress_update_gives_up_after_retry_budget(session_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    from src.study import workflow as workflow_module

    workflow = _workflow(
        session_factory, _QueuedGenerator(FEEDBACK, EXPLANATION, QUIZ), progress_update_attempts=2
    )
    study = await workflow.start_study(17, "John 3:16")
    await workflow.submit_interpretation(17, study.id, INTERPRETATION)

    async def always_conflicts(session, chat_id, snapshot, expected_version):
        raise ConcurrentUpdateConflict(chat_id)

    monkeypatch.setattr(workflow_module, "save_progress", always_conflicts)

    with pytest.raises(ProgressUpdateFailed) as excinfo:
        await workflow.submit_quiz(17, study.id, [0, 1], now=NOW)

    assert excinfo.value.attempts == 2
    stored = await workflow.get_study(17, study.id)
    assert stored.status != "completed"
    assert stored.review_count == 0


@pytest.mark.asyncio
async def test_get_progress_decays_streak(session_factory) -> None:
    workflow = _workflow(session_factory, _QueuedGenerator(FEEDBACK, EXPLANATION, QUIZ))
    study = await workflow.start_study(18, "John 3:16")
    await workflow.submit_interpretation(18, study.id, INTERPRETATION)
    await workflow.submit_quiz(18, study.id, [0, 1], now=NOW)

    same_day = await workflow.get_progress(18, today=NOW.date())
    later = await workflow.get_progress(18, today=(NOW + timedelta(days=3)).date())

    assert same_day.current_streak == 1
    assert later.current_streak == 0
    assert later.longest_streak == 1
    assert later.total_studies == 1
