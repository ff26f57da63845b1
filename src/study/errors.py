"""Error taxonomy shared by the study core and its callers."""

from __future__ import annotations

from typing import Optional, Sequence


class StudyError(Exception):
    """Base class for every rejection raised by the study core."""


class ReferenceParseError(StudyError):
    """A citation could not be resolved into a canonical reference."""

    kind = "reference"

    def __init__(self, value: object, message: str) -> None:
        super().__init__(message)
        self.value = value


class MalformedReference(ReferenceParseError):
    kind = "malformed_reference"

    def __init__(self, raw: str) -> None:
        super().__init__(raw, f"Could not read a verse citation from {raw!r}.")


class UnknownBook(ReferenceParseError):
    kind = "unknown_book"

    def __init__(self, book: str) -> None:
        super().__init__(book, f"Unknown book {book!r}.")


class ChapterOutOfRange(ReferenceParseError):
    kind = "chapter_out_of_range"

    def __init__(self, book: str, chapter: int, chapter_count: int) -> None:
        super().__init__(
            chapter,
            f"{book} has {chapter_count} chapter{'s' if chapter_count != 1 else ''}, not {chapter}.",
        )
        self.book = book
        self.chapter_count = chapter_count


class InvalidVerse(ReferenceParseError):
    kind = "invalid_verse"

    def __init__(self, verse: int) -> None:
        super().__init__(verse, f"Verse numbers start at 1, got {verse}.")


class InvalidRange(ReferenceParseError):
    kind = "invalid_range"

    def __init__(self, verse: int, end_verse: int) -> None:
        super().__init__(end_verse, f"Range end {end_verse} must be greater than verse {verse}.")
        self.verse = verse


class PolicyViolation(StudyError):
    """Generated content contained one or more prohibited phrases."""

    kind = "policy_violation"

    def __init__(self, violations: Sequence[str], label: Optional[str] = None) -> None:
        self.violations = list(violations)
        self.label = label
        target = f"Generated {label}" if label else "Generated content"
        super().__init__(f"{target} contains prohibited phrases: {', '.join(self.violations)}.")


class InvalidScoreRange(StudyError):
    kind = "invalid_score_range"

    def __init__(self, score: object) -> None:
        super().__init__(f"Quiz score must be between 0 and 100, got {score!r}.")
        self.value = score


class ConcurrentUpdateConflict(StudyError):
    """Another writer changed the progress snapshot between read and write."""

    kind = "concurrent_update_conflict"

    def __init__(self, chat_id: int) -> None:
        super().__init__(f"Progress for chat {chat_id} was modified concurrently.")
        self.chat_id = chat_id


class ProgressUpdateFailed(StudyError):
    """Progress could not be saved after exhausting the retry budget."""

    kind = "progress_update_failed"

    def __init__(self, chat_id: int, attempts: int) -> None:
        super().__init__(f"Progress for chat {chat_id} could not be saved after {attempts} attempts.")
        self.chat_id = chat_id
        self.attempts = attempts


class GenerationFailed(StudyError):
    """The text generator timed out, errored, or returned unusable output."""

    kind = "generation_failed"

    def __init__(self, content_kind: str, reason: str) -> None:
        super().__init__(f"Could not generate {content_kind}: {reason}")
        self.content_kind = content_kind
        self.reason = reason


class VerseUnavailable(StudyError):
    kind = "verse_unavailable"

    def __init__(self, citation: str, translation: str) -> None:
        super().__init__(f"No text found for {citation} ({translation}).")
        self.citation = citation
        self.translation = translation


class StudyNotFound(StudyError):
    kind = "study_not_found"

    def __init__(self, study_id: int) -> None:
        super().__init__(f"Study {study_id} was not found.")
        self.study_id = study_id


class InvalidStudyState(StudyError):
    kind = "invalid_study_state"

    def __init__(self, study_id: int, reason: str) -> None:
        super().__init__(f"Study {study_id} cannot continue: {reason}")
        self.study_id = study_id
        self.reason = reason


class InterpretationTooShort(StudyError):
    kind = "interpretation_too_short"

    def __init__(self, min_length: int) -> None:
        super().__init__(f"Please write at least {min_length} characters.")
        self.min_length = min_length
