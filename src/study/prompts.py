"""Prompt builders for the generated parts of a verse study."""

from __future__ import annotations

from typing import Optional

from src.study.catalog import CanonicalBook
from src.study.content import StructuredExplanation


def build_feedback_prompt(citation: str, verse_text: str, interpretation: str) -> str:
    return (
        f"Analyze this interpretation of {citation}.\n\n"
        f'Verse text: "{verse_text}"\n\n'
        f'Learner\'s interpretation: "{interpretation}"\n\n'
        "Respond with a JSON object with exactly these keys:\n"
        "{\n"
        '  "affirmed": ["specific correct insights the learner had"],\n'
        '  "corrected": ["gentle corrections of misunderstandings"],\n'
        '  "gaps": ["important context or meaning the learner missed"]\n'
        "}\n\n"
        "Be warm and specific when affirming and gentle when correcting. "
        "Always produce valid JSON without commentary, Markdown, or code fences."
    )


def build_explanation_prompt(
    citation: str,
    verse_text: str,
    book: Optional[CanonicalBook] = None,
    chapter: Optional[int] = None,
) -> str:
    context_note = ""
    if book is not None and chapter is not None:
        testament = "Old Testament" if book.testament == "OT" else "New Testament"
        context_note = f"This is from {book.name} chapter {chapter} in the {testament}.\n\n"

    return (
        f"Write a structured explanation of {citation}:\n\n"
        f'"{verse_text}"\n\n'
        f"{context_note}"
        "Respond with a JSON object with these keys:\n"
        "{\n"
        '  "summary": "one simple sentence starting with \'This verse means that...\'",\n'
        '  "paragraph": "3-5 plain sentences expanding the main idea",\n'
        '  "literaryContext": "how the verse fits its paragraph, chapter and book",\n'
        '  "historicalContext": "background that affects the meaning",\n'
        '  "greekHebrewWords": [{"original": "transliteration", "meaning": "plain meaning", '
        '"significance": "how it shapes the verse"}],\n'
        '  "theologicalMeaning": "what the verse teaches within the framework",\n'
        '  "pastoralApplication": "3-5 sentences on hope for daily life"\n'
        "}\n\n"
        "Keep the language simple and pastoral. "
        "Always produce valid JSON without commentary, Markdown, or code fences."
    )


def build_quiz_prompt(
    citation: str,
    verse_text: str,
    explanation: StructuredExplanation,
    question_count: int = 3,
) -> str:
    return (
        f"Write {question_count} multiple choice questions that test understanding of {citation}:\n\n"
        f'"{verse_text}"\n\n'
        "Base them on this explanation:\n"
        f"Summary: {explanation.summary}\n"
        f"Context: {explanation.literary_context}\n"
        f"Theological meaning: {explanation.theological_meaning}\n\n"
        "Cover the main point, how context shapes the meaning, and the connection to resurrection hope.\n"
        "Respond with JSON:\n"
        "{\n"
        '  "questions": [\n'
        '    {"id": "q1", "question": "text", "type": "multiple_choice", '
        '"options": ["A", "B", "C", "D"], "correctAnswer": 0, '
        '"explanation": "why this answer is correct"}\n'
        "  ]\n"
        "}\n\n"
        "No trick questions. "
        "Always produce valid JSON without commentary, Markdown, or code fences."
    )


def build_review_prompt(
    citation: str,
    verse_text: str,
    original_interpretation: str,
    new_interpretation: str,
    summary: str,
) -> str:
    return (
        f"Compare two attempts to explain {citation}:\n\n"
        f'"{verse_text}"\n\n'
        f'ORIGINAL ATTEMPT: "{original_interpretation}"\n\n'
        f'NEW ATTEMPT: "{new_interpretation}"\n\n'
        f'CORRECT SUMMARY: "{summary}"\n\n'
        "Respond with JSON:\n"
        "{\n"
        '  "improvements": ["things that are better in the new attempt"],\n'
        '  "stillMissing": ["important points still not understood"],\n'
        '  "retained": ["good insights kept from the original"],\n'
        '  "improvementScore": 0.5\n'
        "}\n\n"
        "improvementScore ranges from -1.0 (worse than before) through 0.0 (about the same) "
        "to 1.0 (much better). Celebrate growth even if small. "
        "Always produce valid JSON without commentary, Markdown, or code fences."
    )
