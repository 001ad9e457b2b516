"""Character classification helpers shared by the tokenizer."""

import unicodedata
from typing import Final

PUNCTUATION_CHARACTERS: Final[str] = (
    ".,;:!?\"'()[]{}"
    "，。；：！？（）【】《》"
    "“”‘’"
)
APOSTROPHES: Final[str] = "'’"
HYPHEN: Final[str] = "-"

CJK_RANGES: Final[tuple[tuple[int, int], ...]] = (
    (0x4E00, 0x9FFF),  # CJK Unified Ideographs
    (0x3400, 0x4DBF),  # Extension A
    (0x20000, 0x2A6DF),  # Extension B
    (0x2A700, 0x2B73F),  # Extension C
    (0x2B740, 0x2B81F),  # Extension D
    (0x3040, 0x309F),  # Hiragana
    (0x30A0, 0x30FF),  # Katakana
    (0xAC00, 0xD7AF),  # Hangul syllables
)
PUNCTUATION_RANGES: Final[tuple[tuple[int, int], ...]] = (
    (0x2000, 0x206F),  # General Punctuation
    (0x2E00, 0x2E7F),  # Supplemental Punctuation
    (0x3000, 0x303F),  # CJK Symbols and Punctuation
)


def _in_ranges(char: str, ranges: tuple[tuple[int, int], ...]) -> bool:
    code = ord(char)
    return any(low <= code <= high for low, high in ranges)


def is_cjk_character(char: str) -> bool:
    """Return True for CJK ideographs, kana and hangul syllables."""
    return _in_ranges(char, CJK_RANGES)


def is_punctuation(char: str) -> bool:
    """Return True for punctuation in any script.

    Whitespace is never punctuation, even inside the punctuation blocks.
    """
    if char.isspace():
        return False
    return (
        char in PUNCTUATION_CHARACTERS
        or _in_ranges(char, PUNCTUATION_RANGES)
        or unicodedata.category(char).startswith("P")
    )


def is_digit(char: str) -> bool:
    return char.isdecimal()


def is_latin_letter(char: str) -> bool:
    """Return True for letters of the Latin script, including accented ones."""
    return char.isalpha() and "LATIN" in unicodedata.name(char, "")


def is_word_character(char: str) -> bool:
    """Return True for characters kept in a space-separated word.

    Letters, digits, combining marks (needed by Devanagari and Tamil),
    apostrophes and hyphens.
    """
    if char in APOSTROPHES or char == HYPHEN:
        return True
    return unicodedata.category(char)[0] in {"L", "N", "M"}
