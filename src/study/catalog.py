"""Canonical 66-book catalog used to validate scripture citations."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple


@dataclass(frozen=True, slots=True)
class CanonicalBook:
    """Immutable catalog entry for a single book."""

    id: int
    name: str
    short_name: str
    testament: str
    order: int
    chapter_count: int


def _book(book_id: int, name: str, short_name: str, chapter_count: int) -> CanonicalBook:
    testament = "OT" if book_id <= 39 else "NT"
    return CanonicalBook(book_id, name, short_name, testament, book_id, chapter_count)


BOOKS: Tuple[CanonicalBook, ...] = (
    _book(1, "Genesis", "Gen", 50),
    _book(2, "Exodus", "Exod", 40),
    _book(3, "Leviticus", "Lev", 27),
    _book(4, "Numbers", "Num", 36),
    _book(5, "Deuteronomy", "Deut", 34),
    _book(6, "Joshua", "Josh", 24),
    _book(7, "Judges", "Judg", 21),
    _book(8, "Ruth", "Ruth", 4),
    _book(9, "1 Samuel", "1Sam", 31),
    _book(10, "2 Samuel", "2Sam", 24),
    _book(11, "1 Kings", "1Kgs", 22),
    _book(12, "2 Kings", "2Kgs", 25),
    _book(13, "1 Chronicles", "1Chr", 29),
    _book(14, "2 Chronicles", "2Chr", 36),
    _book(15, "Ezra", "Ezra", 10),
    _book(16, "Nehemiah", "Neh", 13),
    _book(17, "Esther", "Esth", 10),
    _book(18, "Job", "Job", 42),
    _book(19, "Psalms", "Ps", 150),
    _book(20, "Proverbs", "Prov", 31),
    _book(21, "Ecclesiastes", "Eccl", 12),
    _book(22, "Song of Solomon", "Song", 8),
    _book(23, "Isaiah", "Isa", 66),
    _book(24, "Jeremiah", "Jer", 52),
    _book(25, "Lamentations", "Lam", 5),
    _book(26, "Ezekiel", "Ezek", 48),
    _book(27, "Daniel", "Dan", 12),
    _book(28, "Hosea", "Hos", 14),
    _book(29, "Joel", "Joel", 3),
    _book(30, "Amos", "Amos", 9),
    _book(31, "Obadiah", "Obad", 1),
    _book(32, "Jonah", "Jonah", 4),
    _book(33, "Micah", "Mic", 7),
    _book(34, "Nahum", "Nah", 3),
    _book(35, "Habakkuk", "Hab", 3),
    _book(36, "Zephaniah", "Zeph", 3),
    _book(37, "Haggai", "Hag", 2),
    _book(38, "Zechariah", "Zech", 14),
    _book(39, "Malachi", "Mal", 4),
    _book(40, "Matthew", "Matt", 28),
    _book(41, "Mark", "Mark", 16),
    _book(42, "Luke", "Luke", 24),
    _book(43, "John", "John", 21),
    _book(44, "Acts", "Acts", 28),
    _book(45, "Romans", "Rom", 16),
    _book(46, "1 Corinthians", "1Cor", 16),
    _book(47, "2 Corinthians", "2Cor", 13),
    _book(48, "Galatians", "Gal", 6),
    _book(49, "Ephesians", "Eph", 6),
    _book(50, "Philippians", "Phil", 4),
    _book(51, "Colossians", "Col", 4),
    _book(52, "1 Thessalonians", "1Thess", 5),
    _book(53, "2 Thessalonians", "2Thess", 3),
    _book(54, "1 Timothy", "1Tim", 6),
    _book(55, "2 Timothy", "2Tim", 4),
    _book(56, "Titus", "Titus", 3),
    _book(57, "Philemon", "Phlm", 1),
    _book(58, "Hebrews", "Heb", 13),
    _book(59, "James", "Jas", 5),
    _book(60, "1 Peter", "1Pet", 5),
    _book(61, "2 Peter", "2Pet", 3),
    _book(62, "1 John", "1John", 5),
    _book(63, "2 John", "2John", 1),
    _book(64, "3 John", "3John", 1),
    _book(65, "Jude", "Jude", 1),
    _book(66, "Revelation", "Rev", 22),
)


def _build_name_index() -> Dict[str, CanonicalBook]:
    index: Dict[str, CanonicalBook] = {}
    for book in BOOKS:
        index.setdefault(book.name.lower(), book)
        index.setdefault(book.short_name.lower(), book)
    return index


BOOKS_BY_ID: Mapping[int, CanonicalBook] = MappingProxyType({book.id: book for book in BOOKS})
BOOKS_BY_NAME: Mapping[str, CanonicalBook] = MappingProxyType(_build_name_index())


def find_book(name: str) -> Optional[CanonicalBook]:
    """Look up a book by full or short name, ignoring case.

    Short names are stored without spaces, so ``1 Cor`` also finds ``1Cor``.
    """
    key = name.strip().lower()
    return BOOKS_BY_NAME.get(key) or BOOKS_BY_NAME.get(key.replace(" ", ""))


def get_book_by_id(book_id: int) -> Optional[CanonicalBook]:
    return BOOKS_BY_ID.get(book_id)
