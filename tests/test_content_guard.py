from __future__ import annotations

from pathlib import Path

import pytest

from src.study.content import InterpretationFeedback
from src.study.content_guard import ContentGuard, load_content_guard
from src.study.errors import PolicyViolation


def test_bundled_policy_is_loaded() -> None:
    guard = load_content_guard()

    assert "immortal soul" in guard.phrases
    assert all(phrase == phrase.lower() for phrase in guard.phrases)


def test_check_is_case_insensitive_and_lists_every_match() -> None:
    guard = ContentGuard(["Immortal Soul", "eternal suffering", "immortal soul"])

    result = guard.check("They spoke of an IMMORTAL SOUL and of Eternal Suffering.")

    assert result.valid is False
    assert result.violations == ["immortal soul", "eternal suffering"]
    assert guard.check("The dead are raised bodily.").valid is True


def test_structured_content_is_checked_across_all_fields() -> None:
    guard = ContentGuard(["inherent immortality"])
    feedback = InterpretationFeedback(
        affirmed=["You noticed God's love."],
        corrected=[],
        gaps=["Scripture never teaches inherent immortality."],
    )

    assert guard.check_content(feedback).violations == ["inherent immortality"]
    assert guard.check_content({"nested": {"list": ["Inherent Immortality"]}}).valid is False


def test_enforce_raises_with_label() -> None:
    guard = ContentGuard(["tormented forever"])

    with pytest.raises(PolicyViolation) as excinfo:
        guard.enforce({"paragraph": "the wicked are tormented forever"}, label="explanation")

    assert excinfo.value.violations == ["tormented forever"]
    assert excinfo.value.label == "explanation"
    guard.enforce("the wicked perish")


def test_policy_file_skips_comments_and_blank_lines(tmp_path: Path) -> None:
    policy = tmp_path / "policy.txt"
    policy.write_text("# prohibited\n\nSecond Divine Person\n  god the son  \n", encoding="utf-8")

    guard = load_content_guard(policy)

    assert guard.phrases == ("second divine person", "god the son")


def test_empty_policy_file_is_rejected(tmp_path: Path) -> None:
    policy = tmp_path / "policy.txt"
    policy.write_text("# nothing here\n", encoding="utf-8")

    with pytest.raises(RuntimeError):
        load_content_guard(policy)


def test_bundled_policy_examples() -> None:
    guard = load_content_guard()

    rejected = guard.check("This teaches an Immortal Soul")
    assert rejected.valid is False
    assert rejected.violations == ["immortal soul"]
    assert guard.check("Jesus is the human Messiah").valid is True
