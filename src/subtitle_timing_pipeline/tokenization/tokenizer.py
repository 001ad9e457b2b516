"""Script-aware tokenization of reference subtitle text.

Character mode is used for CJK languages: every ideograph, kana or hangul
syllable is its own token, digit runs (with trailing time-unit markers) and
Latin runs are grouped. Space mode is used for everything else: the text is
split on whitespace and punctuation is peeled off into separate tokens.
"""

from enum import StrEnum

from loguru import logger

from subtitle_timing_pipeline.config import TokenizerSettings
from subtitle_timing_pipeline.exceptions import InvalidTextError
from subtitle_timing_pipeline.models import Token, TokenClass
from subtitle_timing_pipeline.tokenization.scripts import (
    is_cjk_character,
    is_digit,
    is_latin_letter,
    is_punctuation,
    is_word_character,
)


class TokenizationMode(StrEnum):
    """Tokenization strategies."""

    CHARACTER = "character"
    SPACE = "space"


def resolve_tokenization_mode(
    language_code: str | None, *, settings: TokenizerSettings | None = None
) -> TokenizationMode:
    """Pick the tokenization strategy for a language code.

    Unknown codes fall back to space mode.

    Args:
        language_code: BCP-47 style code such as ``en-GB`` or ``cmn-CN``.
        settings: Language membership lists; defaults when omitted.

    Returns:
        The tokenization mode to use.
    """
    settings = settings or TokenizerSettings()
    code = (language_code or "").strip().casefold()
    if code in {c.casefold() for c in settings.cjk_language_codes}:
        return TokenizationMode.CHARACTER
    if code and code not in {c.casefold() for c in settings.space_separated_language_codes}:
        logger.debug(f"Unknown language code {language_code!r}, using space tokenization")
    return TokenizationMode.SPACE


class _TokenBuilder:
    """Accumulates tokens with contiguous positions."""

    def __init__(self) -> None:
        self.tokens: list[Token] = []

    def add(self, *, surface: str, token_class: TokenClass, clean: str | None = None) -> None:
        self.tokens.append(
            Token(
                surface_form=surface,
                clean_form=surface if clean is None else clean,
                position=len(self.tokens),
                token_class=token_class,
            )
        )

    def add_stripped(self, char: str) -> None:
        token_class = TokenClass.PUNCTUATION if is_punctuation(char) else TokenClass.OTHER
        self.add(surface=char, token_class=token_class)


def _tokenize_characters(text: str, *, time_units: str) -> list[Token]:
    builder = _TokenBuilder()
    i = 0
    length = len(text)

    while i < length:
        char = text[i]

        if char.isspace():
            i += 1
        elif is_punctuation(char):
            builder.add(surface=char, token_class=TokenClass.PUNCTUATION)
            i += 1
        elif is_digit(char):
            j = i + 1
            while j < length and (is_digit(text[j]) or text[j] in time_units):
                j += 1
            builder.add(surface=text[i:j], token_class=TokenClass.NUMBER)
            i = j
        elif is_latin_letter(char):
            j = i + 1
            while j < length and is_latin_letter(text[j]):
                j += 1
            run = text[i:j]
            builder.add(surface=run, token_class=TokenClass.LATIN, clean=run.lower())
            i = j
        elif is_cjk_character(char):
            builder.add(surface=char, token_class=TokenClass.CJK)
            i += 1
        else:
            builder.add(surface=char, token_class=TokenClass.OTHER)
            i += 1

    return builder.tokens


def _tokenize_chunk(chunk: str, *, builder: _TokenBuilder) -> None:
    """Emit the tokens of one whitespace-delimited chunk."""
    word = "".join(c for c in chunk if is_word_character(c))

    if not any(c.isalnum() for c in word):
        for char in chunk:
            builder.add_stripped(char)
        return

    leading_end = 0
    while not is_word_character(chunk[leading_end]):
        leading_end += 1

    for char in chunk[:leading_end]:
        builder.add_stripped(char)

    builder.add(surface=word, token_class=TokenClass.WORD, clean=word.lower())

    for char in chunk[leading_end:]:
        if not is_word_character(char):
            builder.add_stripped(char)


def _tokenize_space_separated(text: str) -> list[Token]:
    builder = _TokenBuilder()
    for chunk in text.split():
        _tokenize_chunk(chunk, builder=builder)
    return builder.tokens


def tokenize(
    text: str, language_code: str | None, *, settings: TokenizerSettings | None = None
) -> list[Token]:
    """Split reference text into typed tokens.

    Args:
        text: Reference subtitle or transcript text.
        language_code: Language of the text, used to pick the strategy.
        settings: Tokenizer settings; defaults when omitted.

    Returns:
        Tokens with contiguous positions starting at 0. Empty or
        whitespace-only text yields an empty list.

    Raises:
        InvalidTextError: If ``text`` is not a string.
    """
    if not isinstance(text, str):
        raise InvalidTextError(f"Reference text must be a string, got {type(text).__name__}")

    settings = settings or TokenizerSettings()
    if not text.strip():
        return []

    mode = resolve_tokenization_mode(language_code, settings=settings)
    if mode is TokenizationMode.CHARACTER:
        return _tokenize_characters(text, time_units=settings.time_unit_characters)
    return _tokenize_space_separated(text)
