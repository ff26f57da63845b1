"""Policy check applied to every block of generated text before it is trusted."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from src.study.errors import PolicyViolation


DEFAULT_POLICY_PATH = Path(__file__).resolve().parents[2] / "static" / "content_policy.txt"


@dataclass(frozen=True, slots=True)
class GuardResult:
    valid: bool
    violations: List[str] = field(default_factory=list)


class ContentGuard:
    """Case-insensitive substring scan against an ordered list of phrases."""

    def __init__(self, phrases: Sequence[str]) -> None:
        normalized: List[str] = []
        for phrase in phrases:
            cleaned = phrase.strip().lower()
            if cleaned and cleaned not in normalized:
                normalized.append(cleaned)
        self._phrases: Tuple[str, ...] = tuple(normalized)

    @property
    def phrases(self) -> Tuple[str, ...]:
        return self._phrases

    def check(self, text: str) -> GuardResult:
        lowered = text.lower()
        violations = [phrase for phrase in self._phrases if phrase in lowered]
        return GuardResult(valid=not violations, violations=violations)

    def check_content(self, content: Union[str, Mapping[str, Any], Any]) -> GuardResult:
        """Check every field of a structured block at once."""
        return self.check(serialize_content(content))

    def enforce(self, content: Union[str, Mapping[str, Any], Any], label: Optional[str] = None) -> None:
        """Raise :class:`PolicyViolation` when ``content`` fails the check."""
        result = self.check_content(content)
        if not result.valid:
            raise PolicyViolation(result.violations, label=label)


def serialize_content(content: Union[str, Mapping[str, Any], Any]) -> str:
    if isinstance(content, str):
        return content
    if hasattr(content, "to_dict"):
        content = content.to_dict()
    return json.dumps(content, ensure_ascii=False)


def read_policy_phrases(path: Path) -> List[str]:
    """Read one phrase per line, skipping blanks and ``#`` comments."""
    phrases: List[str] = []
    with path.open(encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            phrases.append(stripped)
    return phrases


def load_content_guard(path: Optional[Path] = None) -> ContentGuard:
    """Build a guard from the policy file, falling back to the bundled list."""
    policy_path = path or DEFAULT_POLICY_PATH
    phrases = read_policy_phrases(policy_path)
    if not phrases:
        raise RuntimeError(f"Content policy file {policy_path} does not list any phrases.")
    return ContentGuard(phrases)
