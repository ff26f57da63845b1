"""Typed structures for generated study content and their JSON parsing."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from src.study.errors import GenerationFailed


FEEDBACK = "feedback"
EXPLANATION = "explanation"
QUIZ = "quiz"
REVIEW = "review comparison"

MULTIPLE_CHOICE = "multiple_choice"
SHORT_ANSWER = "short_answer"

Answer = Union[int, str]


def strip_code_fences(response_text: str) -> str:
    fenced = response_text.strip()
    if fenced.startswith("```") and fenced.endswith("```"):
        return fenced.split("\n", 1)[-1].rsplit("\n", 1)[0]
    return fenced


def parse_json_object(raw_text: str, kind: str) -> Dict[str, Any]:
    """Decode generator output that is expected to hold one JSON object."""
    cleaned = strip_code_fences(raw_text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise GenerationFailed(kind, "response was not valid JSON") from exc
    if not isinstance(payload, dict):
        raise GenerationFailed(kind, "response was not a JSON object")
    return payload


def _text(value: object) -> Optional[str]:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _required_text(payload: Dict[str, Any], key: str, kind: str) -> str:
    value = _text(payload.get(key))
    if value is None:
        raise GenerationFailed(kind, f"missing field {key!r}")
    return value


def _text_list(value: object) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in (_text(entry) for entry in value) if item]


@dataclass(slots=True)
class InterpretationFeedback:
    """What the learner got right, what needs correcting, and what was missed."""

    affirmed: List[str]
    corrected: List[str]
    gaps: List[str]

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "InterpretationFeedback":
        feedback = cls(
            affirmed=_text_list(payload.get("affirmed")),
            corrected=_text_list(payload.get("corrected")),
            gaps=_text_list(payload.get("gaps")),
        )
        if not (feedback.affirmed or feedback.corrected or feedback.gaps):
            raise GenerationFailed(FEEDBACK, "no feedback items were returned")
        return feedback

    def to_dict(self) -> Dict[str, Any]:
        return {"affirmed": self.affirmed, "corrected": self.corrected, "gaps": self.gaps}


@dataclass(slots=True)
class OriginalWord:
    original: str
    meaning: str
    significance: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"original": self.original, "meaning": self.meaning, "significance": self.significance}


@dataclass(slots=True)
class StructuredExplanation:
    summary: str
    paragraph: str
    literary_context: str
    historical_context: str
    theological_meaning: str
    pastoral_application: str
    original_words: List[OriginalWord] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "StructuredExplanation":
        words: List[OriginalWord] = []
        raw_words = payload.get("greekHebrewWords")
        for raw_word in raw_words if isinstance(raw_words, list) else []:
            if not isinstance(raw_word, dict):
                continue
            original = _text(raw_word.get("original"))
            meaning = _text(raw_word.get("meaning"))
            if original and meaning:
                words.append(
                    OriginalWord(original, meaning, _text(raw_word.get("significance")) or "")
                )

        return cls(
            summary=_required_text(payload, "summary", EXPLANATION),
            paragraph=_required_text(payload, "paragraph", EXPLANATION),
            literary_context=_text(payload.get("literaryContext")) or "",
            historical_context=_text(payload.get("historicalContext")) or "",
            theological_meaning=_text(payload.get("theologicalMeaning")) or "",
            pastoral_application=_text(payload.get("pastoralApplication")) or "",
            original_words=words,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "paragraph": self.paragraph,
            "literaryContext": self.literary_context,
            "historicalContext": self.historical_context,
            "greekHebrewWords": [word.to_dict() for word in self.original_words],
            "theologicalMeaning": self.theological_meaning,
            "pastoralApplication": self.pastoral_application,
        }


@dataclass(slots=True)
class QuizQuestion:
    id: str
    question: str
    type: str
    correct_answer: Answer
    options: List[str] = field(default_factory=list)
    explanation: str = ""

    @classmethod
    def from_payload(cls, payload: object, index: int) -> "QuizQuestion":
        if not isinstance(payload, dict):
            raise GenerationFailed(QUIZ, f"question #{index} has an invalid format")

        question = _required_text(payload, "question", QUIZ)
        question_type = _text(payload.get("type")) or MULTIPLE_CHOICE
        options = _text_list(payload.get("options"))
        correct = payload.get("correctAnswer")

        if question_type == MULTIPLE_CHOICE:
            if len(options) < 2:
                raise GenerationFailed(QUIZ, f"question #{index} needs at least two options")
            if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < len(options):
                raise GenerationFailed(QUIZ, f"question #{index} has no valid correct option")
        elif question_type == SHORT_ANSWER:
            correct = _text(correct)
            if correct is None:
                raise GenerationFailed(QUIZ, f"question #{index} has no expected answer")
        else:
            raise GenerationFailed(QUIZ, f"question #{index} has unknown type {question_type!r}")

        return cls(
            id=_text(payload.get("id")) or f"q{index}",
            question=question,
            type=question_type,
            correct_answer=correct,
            options=options,
            explanation=_text(payload.get("explanation")) or "",
        )

    def is_correct(self, answer: Optional[Answer]) -> bool:
        if answer is None:
            return False
        if self.type == MULTIPLE_CHOICE:
            if isinstance(answer, str) and answer.strip().isdigit():
                answer = int(answer.strip())
            return answer == self.correct_answer
        return str(answer).strip().lower() == str(self.correct_answer).strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "question": self.question,
            "type": self.type,
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }
        if self.options:
            data["options"] = self.options
        return data


@dataclass(slots=True)
class Quiz:
    questions: List[QuizQuestion]

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Quiz":
        raw_questions = payload.get("questions")
        if not isinstance(raw_questions, list) or not raw_questions:
            raise GenerationFailed(QUIZ, "no questions were returned")
        return cls([QuizQuestion.from_payload(raw, index) for index, raw in enumerate(raw_questions, start=1)])

    @classmethod
    def from_stored(cls, stored: Optional[Sequence[Dict[str, Any]]]) -> "Quiz":
        return cls.from_payload({"questions": list(stored or [])})

    def to_dict(self) -> Dict[str, Any]:
        return {"questions": [question.to_dict() for question in self.questions]}


@dataclass(slots=True)
class QuizResult:
    correct_count: int
    total_questions: int

    @property
    def score(self) -> float:
        return self.correct_count / self.total_questions * 100


def score_quiz(quiz: Quiz, answers: Sequence[Optional[Answer]]) -> QuizResult:
    """Count correct answers; unanswered questions count as wrong."""
    correct = 0
    for index, question in enumerate(quiz.questions):
        answer = answers[index] if index < len(answers) else None
        if question.is_correct(answer):
            correct += 1
    return QuizResult(correct_count=correct, total_questions=len(quiz.questions))


@dataclass(slots=True)
class ReviewComparison:
    improvements: List[str]
    still_missing: List[str]
    retained: List[str]
    improvement_score: float = 0.0

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ReviewComparison":
        raw_score = payload.get("improvementScore", 0)
        if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
            raise GenerationFailed(REVIEW, "improvementScore is not a number")
        if not -1.0 <= raw_score <= 1.0:
            raise GenerationFailed(REVIEW, f"improvementScore {raw_score} is outside [-1, 1]")
        return cls(
            improvements=_text_list(payload.get("improvements")),
            still_missing=_text_list(payload.get("stillMissing")),
            retained=_text_list(payload.get("retained")),
            improvement_score=float(raw_score),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "improvements": self.improvements,
            "stillMissing": self.still_missing,
            "retained": self.retained,
            "improvementScore": self.improvement_score,
        }
