from __future__ import annotations

import pytest

from src.study.catalog import BOOKS, find_book, get_book_by_id
from src.study.errors import (
    ChapterOutOfRange,
    InvalidRange,
    InvalidVerse,
    MalformedReference,
    UnknownBook,
)
from src.study.references import VerseReference, format_reference, resolve_reference


def test_catalog_lists_the_protestant_canon_in_order() -> None:
    assert len(BOOKS) == 66
    assert [book.order for book in BOOKS] == list(range(1, 67))
    assert sum(1 for book in BOOKS if book.testament == "OT") == 39
    assert get_book_by_id(19).name == "Psalms"
    assert get_book_by_id(19).chapter_count == 150
    assert get_book_by_id(67) is None


def test_find_book_accepts_names_and_short_names_in_any_case() -> None:
    assert find_book("genesis").id == 1
    assert find_book("  GEN ").id == 1
    assert find_book("1 Cor").name == "1 Corinthians"
    assert find_book("Hezekiah") is None


def test_resolve_single_verse() -> None:
    reference = resolve_reference("John 3:16")

    assert reference == VerseReference(book="John", chapter=3, verse=16)
    assert reference.citation == "John 3:16"
    assert reference.is_range is False
    assert reference.book_info.testament == "NT"


def test_resolve_range_and_short_name() -> None:
    reference = resolve_reference("  1 cor 15:51-53 ")

    assert reference.book == "1 Corinthians"
    assert (reference.chapter, reference.verse, reference.end_verse) == (15, 51, 53)
    assert format_reference(reference) == "1 Corinthians 15:51-53"


def test_resolve_collapses_whitespace_inside_book_names() -> None:
    assert resolve_reference("Song  of   Solomon 2:4").book == "Song of Solomon"


def test_every_book_round_trips_through_its_citation() -> None:
    for book in BOOKS:
        reference = resolve_reference(f"{book.name} {book.chapter_count}:1")
        assert resolve_reference(reference.citation) == reference


@pytest.mark.parametrize(
    ("raw", "error", "kind"),
    [
        ("John", MalformedReference, "malformed_reference"),
        ("John 3", MalformedReference, "malformed_reference"),
        ("John 3:16-", MalformedReference, "malformed_reference"),
        ("Hezekiah 1:1", UnknownBook, "unknown_book"),
        ("Genesis 51:1", ChapterOutOfRange, "chapter_out_of_range"),
        ("Jude 0:1", ChapterOutOfRange, "chapter_out_of_range"),
        ("John 3:0", InvalidVerse, "invalid_verse"),
        ("John 3:16-16", InvalidRange, "invalid_range"),
        ("John 3:16-10", InvalidRange, "invalid_range"),
    ],
)
def test_invalid_references_raise_specific_errors(raw: str, error: type, kind: str) -> None:
    with pytest.raises(error) as excinfo:
        resolve_reference(raw)

    assert excinfo.value.kind == kind


def test_chapter_error_reports_the_offending_chapter() -> None:
    with pytest.raises(ChapterOutOfRange) as excinfo:
        resolve_reference("Obadiah 2:1")

    assert excinfo.value.value == 2
    assert excinfo.value.chapter_count == 1


@pytest.mark.parametrize(
    ("raw", "error"),
    [("1 John 99:1", ChapterOutOfRange), ("Mormon 1:1", UnknownBook)],
)
def test_documented_rejections(raw: str, error: type) -> None:
    with pytest.raises(error):
        resolve_reference(raw)
