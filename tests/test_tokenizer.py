"""Tests for reference text tokenization."""

import pytest
from pytest_mock import MockerFixture

from subtitle_timing_pipeline.config import TokenizerSettings
from subtitle_timing_pipeline.exceptions import InvalidTextError
from subtitle_timing_pipeline.models import TokenClass
from subtitle_timing_pipeline.tokenization import (
    TokenizationMode,
    resolve_tokenization_mode,
    tokenize,
)
from subtitle_timing_pipeline.tokenization.scripts import (
    is_cjk_character,
    is_latin_letter,
    is_punctuation,
    is_word_character,
)


def surfaces(text: str, language_code: str) -> list[str]:
    return [token.surface_form for token in tokenize(text, language_code)]


@pytest.mark.unit
class TestResolveTokenizationMode:
    """Language routing between character and space tokenization."""

    @pytest.mark.parametrize("code", ["cmn-CN", "zh-CN", "cmn-Hans-CN", "ja-JP", "ko-KR", "zh"])
    def test_cjk_codes_use_character_mode(self, code: str) -> None:
        """Chinese, Japanese and Korean codes are split per character."""
        assert resolve_tokenization_mode(code) is TokenizationMode.CHARACTER

    @pytest.mark.parametrize("code", ["en-GB", "es-ES", "hi-IN", "ta-IN", "xx-YY", "", None])
    def test_other_codes_use_space_mode(self, code: str | None) -> None:
        """Known and unknown non-CJK codes fall back to space mode."""
        assert resolve_tokenization_mode(code) is TokenizationMode.SPACE

    def test_matching_is_case_insensitive(self) -> None:
        """Codes match regardless of case and surrounding whitespace."""
        assert resolve_tokenization_mode(" CMN-cn ") is TokenizationMode.CHARACTER

    def test_custom_settings(self) -> None:
        """Configured language lists drive the routing."""
        settings = TokenizerSettings(cjk_language_codes=["th-TH"])
        assert resolve_tokenization_mode("th-TH", settings=settings) is TokenizationMode.CHARACTER
        assert resolve_tokenization_mode("cmn-CN", settings=settings) is TokenizationMode.SPACE

    def test_unknown_code_is_logged(self, mocker: MockerFixture) -> None:
        """Codes in neither language list are reported before falling back."""
        mock_logger = mocker.patch("subtitle_timing_pipeline.tokenization.tokenizer.logger")

        assert resolve_tokenization_mode("xx-YY") is TokenizationMode.SPACE
        mock_logger.debug.assert_called_once()
        assert "xx-YY" in mock_logger.debug.call_args.args[0]

    @pytest.mark.parametrize("code", ["en-GB", "EN-gb", "", None])
    def test_listed_or_missing_code_is_not_logged(
        self, mocker: MockerFixture, code: str | None
    ) -> None:
        mock_logger = mocker.patch("subtitle_timing_pipeline.tokenization.tokenizer.logger")

        assert resolve_tokenization_mode(code) is TokenizationMode.SPACE
        mock_logger.debug.assert_not_called()


@pytest.mark.unit
class TestCharacterTokenization:
    """Character mode for CJK text."""

    def test_chinese_with_punctuation(self) -> None:
        """Each ideograph and the full-width comma become separate tokens."""
        tokens = tokenize("你好，世界", "cmn-CN")

        assert [t.surface_form for t in tokens] == ["你", "好", "，", "世", "界"]
        assert [t.token_class for t in tokens] == [
            TokenClass.CJK,
            TokenClass.CJK,
            TokenClass.PUNCTUATION,
            TokenClass.CJK,
            TokenClass.CJK,
        ]
        assert [t.position for t in tokens] == [0, 1, 2, 3, 4]

    def test_latin_run_is_one_token(self) -> None:
        """Embedded Latin words stay whole and get a lower-cased clean form."""
        tokens = tokenize("我爱Python", "cmn-CN")

        assert [t.surface_form for t in tokens] == ["我", "爱", "Python"]
        assert tokens[2].token_class is TokenClass.LATIN
        assert tokens[2].clean_form == "python"

    def test_digits_absorb_time_units(self) -> None:
        """Digit runs followed by time-unit characters form one number token."""
        tokens = tokenize("在3点10分见", "cmn-CN")

        assert [t.surface_form for t in tokens] == ["在", "3", "点", "10分", "见"]
        assert tokens[1].token_class is TokenClass.NUMBER
        assert tokens[3].token_class is TokenClass.NUMBER

    def test_whitespace_is_dropped(self) -> None:
        """ASCII and ideographic spaces never become tokens."""
        assert surfaces("你 好　世", "cmn-CN") == ["你", "好", "世"]

    def test_japanese_kana(self) -> None:
        """Hiragana characters are tokenized individually."""
        tokens = tokenize("こんにちは", "ja-JP")

        assert len(tokens) == 5
        assert all(t.token_class is TokenClass.CJK for t in tokens)

    def test_unknown_symbol_is_other(self) -> None:
        """Characters outside every known class are kept as other tokens."""
        tokens = tokenize("好☺", "cmn-CN")

        assert tokens[1].surface_form == "☺"
        assert tokens[1].token_class is TokenClass.OTHER


@pytest.mark.unit
class TestSpaceTokenization:
    """Space mode for whitespace-delimited scripts."""

    def test_trailing_punctuation_is_split(self) -> None:
        """Punctuation attached to a word becomes its own token after it."""
        tokens = tokenize("Hello, world", "en-GB")

        assert [t.surface_form for t in tokens] == ["Hello", ",", "world"]
        assert [t.token_class for t in tokens] == [
            TokenClass.WORD,
            TokenClass.PUNCTUATION,
            TokenClass.WORD,
        ]
        assert tokens[0].clean_form == "hello"

    def test_leading_punctuation_precedes_word(self) -> None:
        """Opening quotes keep their reading-order position before the word."""
        assert surfaces("“Hello” she said.", "en-GB") == ["“", "Hello", "”", "she", "said", "."]

    def test_apostrophes_and_hyphens_stay_in_words(self) -> None:
        """Contractions and hyphenated words are single tokens."""
        assert surfaces("don't well-known", "en-GB") == ["don't", "well-known"]

    def test_punctuation_only_chunk(self) -> None:
        """A chunk with no letters or digits yields one token per character."""
        tokens = tokenize("wait ... now", "en-GB")

        assert [t.surface_form for t in tokens] == ["wait", ".", ".", ".", "now"]
        assert all(t.token_class is TokenClass.PUNCTUATION for t in tokens[1:4])

    def test_dash_is_punctuation(self) -> None:
        """A free-standing em dash is punctuation."""
        tokens = tokenize("yes — no", "en-GB")

        assert tokens[1].token_class is TokenClass.PUNCTUATION

    def test_devanagari_combining_marks(self) -> None:
        """Vowel signs and viramas stay inside Hindi words."""
        assert surfaces("नमस्ते दुनिया", "hi-IN") == ["नमस्ते", "दुनिया"]

    def test_accented_latin(self) -> None:
        """Accented letters are word characters."""
        assert surfaces("¿Qué tal?", "es-ES") == ["¿", "Qué", "tal", "?"]


@pytest.mark.unit
class TestTokenizeEdgeCases:
    """Input validation and invariants."""

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_yields_no_tokens(self, text: str) -> None:
        """Empty or whitespace-only text produces an empty list."""
        assert tokenize(text, "en-GB") == []

    def test_non_string_raises(self) -> None:
        """Non-string input is a programmer error."""
        with pytest.raises(InvalidTextError):
            tokenize(None, "en-GB")  # type: ignore[arg-type]

    def test_invalid_text_error_is_type_error(self) -> None:
        """Callers catching TypeError also see invalid text."""
        with pytest.raises(TypeError):
            tokenize(42, "cmn-CN")  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "text,code",
        [("Hello, world!", "en-GB"), ("你好，世界。", "cmn-CN"), ("Les élèves «lisent».", "fr-FR")],
    )
    def test_positions_are_contiguous_and_deterministic(self, text: str, code: str) -> None:
        """Positions run from 0 without gaps, and repeated calls agree."""
        first = tokenize(text, code)
        second = tokenize(text, code)

        assert [t.position for t in first] == list(range(len(first)))
        assert first == second


@pytest.mark.unit
class TestScripts:
    """Character classification helpers."""

    def test_is_cjk_character(self) -> None:
        assert is_cjk_character("中")
        assert is_cjk_character("カ")
        assert is_cjk_character("한")
        assert not is_cjk_character("a")

    def test_is_punctuation(self) -> None:
        assert is_punctuation("。")
        assert is_punctuation("!")
        assert is_punctuation("…")
        assert not is_punctuation("　")
        assert not is_punctuation("a")

    def test_is_latin_letter(self) -> None:
        assert is_latin_letter("é")
        assert not is_latin_letter("я")
        assert not is_latin_letter("1")

    def test_is_word_character(self) -> None:
        assert is_word_character("'")
        assert is_word_character("-")
        assert is_word_character("्")
        assert not is_word_character(",")
