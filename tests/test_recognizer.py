"""Tests for the speech recognizer client and offset normalization."""

import asyncio
import base64
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import orjson
import pytest

from subtitle_timing_pipeline.exceptions import RecognitionError
from subtitle_timing_pipeline.models import RecognizedWord
from subtitle_timing_pipeline.services.recognizer import (
    GoogleSpeechRecognizer,
    extract_word_offsets,
    normalize_recognized_words,
    parse_offset,
    split_cjk_words,
    to_recognizer_locale,
)


def mock_session(*responses: tuple[int, Any]) -> MagicMock:
    """Session whose ``post`` yields the given (status, body) pairs in order."""
    session = MagicMock()
    contexts = []
    for status, body in responses:
        response = MagicMock()
        response.status = status
        response.read = AsyncMock(
            return_value=body if isinstance(body, bytes) else orjson.dumps(body)
        )
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=response)
        context.__aexit__ = AsyncMock(return_value=False)
        contexts.append(context)
    session.post = MagicMock(side_effect=contexts)
    session.close = AsyncMock()
    return session


RESPONSE: dict[str, Any] = {
    "results": [
        {
            "alternatives": [
                {
                    "transcript": "hello world",
                    "words": [
                        {"word": "hello", "startTime": "0.100s", "endTime": "0.500s"},
                        {"word": "world", "startTime": "0.600s", "endTime": "1s"},
                    ],
                },
                {"transcript": "yellow world", "words": [{"word": "yellow"}]},
            ]
        },
        {"alternatives": []},
        {
            "alternatives": [
                {"words": [{"word": "again", "startTime": "2s", "endTime": "2.400s"}]}
            ]
        },
    ]
}


@pytest.mark.unit
class TestLocaleMapping:
    def test_generic_mandarin_is_mapped(self) -> None:
        assert to_recognizer_locale("cmn-CN") == "cmn-Hans-CN"

    @pytest.mark.parametrize("code", ["", None, "   "])
    def test_empty_code_defaults_to_us_english(self, code: str | None) -> None:
        assert to_recognizer_locale(code) == "en-US"

    def test_other_codes_pass_through(self) -> None:
        assert to_recognizer_locale("en-GB") == "en-GB"
        assert to_recognizer_locale("ja-JP") == "ja-JP"

    def test_custom_overrides(self) -> None:
        overrides = {"en-GB": "en-AU"}
        assert to_recognizer_locale("en-GB", overrides=overrides) == "en-AU"
        assert to_recognizer_locale("cmn-CN", overrides=overrides) == "cmn-CN"


@pytest.mark.unit
class TestParseOffset:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (1.5, 1.5),
            (2, 2.0),
            ("1.300s", 1.3),
            ("4", 4.0),
            ({"seconds": "2", "nanos": 500000000}, 2.5),
            ({"nanos": 100000000}, 0.1),
            ({}, 0.0),
            (None, 0.0),
        ],
    )
    def test_supported_shapes(self, value: Any, expected: float) -> None:
        assert parse_offset(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["abc", [1.0], True])
    def test_unsupported_shapes_raise(self, value: Any) -> None:
        with pytest.raises(ValueError):
            parse_offset(value)


@pytest.mark.unit
class TestNormalizeRecognizedWords:
    def test_mixed_key_styles(self) -> None:
        """Both start/end and startTime/endTime keys are understood."""
        words = normalize_recognized_words(
            [
                {"word": "one", "start": 0.1, "end": 0.4},
                {"word": "two", "startTime": {"seconds": 1, "nanos": 0}, "endTime": "1.5s"},
            ]
        )

        assert words == [RecognizedWord("one", 0.1, 0.4), RecognizedWord("two", 1.0, 1.5)]

    def test_drops_empty_and_malformed_entries(self) -> None:
        words = normalize_recognized_words(
            [
                {"word": "", "start": 0.0, "end": 0.1},
                {"word": "   ", "start": 0.0, "end": 0.1},
                {"word": "bad", "start": "soon", "end": 1.0},
                42,
                {"word": "ok", "start": 1.0, "end": 1.2},
            ]
        )

        assert [w.word for w in words] == ["ok"]

    def test_reversed_intervals_are_swapped(self) -> None:
        [word] = normalize_recognized_words([{"word": "x", "start": 2.0, "end": 1.0}])
        assert (word.start, word.end) == (1.0, 2.0)

    def test_recognized_words_pass_through(self) -> None:
        original = [RecognizedWord("hi", 0.0, 0.3)]
        words = normalize_recognized_words(original)

        assert words == original
        assert words is not original

    def test_none_yields_empty_list(self) -> None:
        assert normalize_recognized_words(None) == []


@pytest.mark.unit
class TestSplitCjkWords:
    def test_multi_character_word_is_split(self) -> None:
        """Each character gets an equal slice of the interval."""
        words = split_cjk_words([RecognizedWord("你好", 1.0, 2.0)])

        assert words == [RecognizedWord("你", 1.0, 1.5), RecognizedWord("好", 1.5, 2.0)]

    def test_non_cjk_and_single_characters_are_kept(self) -> None:
        original = [RecognizedWord("hello", 0.0, 0.5), RecognizedWord("好", 0.5, 0.7)]
        assert split_cjk_words(original) == original


@pytest.mark.unit
class TestExtractWordOffsets:
    def test_uses_top_alternative_of_each_result(self) -> None:
        words = extract_word_offsets(RESPONSE)
        assert [w["word"] for w in words] == ["hello", "world", "again"]

    def test_empty_response(self) -> None:
        assert extract_word_offsets({}) == []


@pytest.mark.unit
class TestGoogleSpeechRecognizer:
    """REST client behaviour with a mocked aiohttp session."""

    def test_build_request(self) -> None:
        recognizer = GoogleSpeechRecognizer(api_key="key")
        body = recognizer.build_request(audio=b"abc", language_code="cmn-CN")

        assert body["config"] == {
            "languageCode": "cmn-Hans-CN",
            "enableWordTimeOffsets": True,
            "model": "default",
        }
        assert base64.b64decode(body["audio"]["content"]) == b"abc"

    @pytest.mark.asyncio
    async def test_recognize_returns_word_offsets(self) -> None:
        session = mock_session((200, RESPONSE))
        recognizer = GoogleSpeechRecognizer(
            api_key="secret", endpoint="https://speech.example.com/v1/", session=session
        )

        words = await recognizer.recognize(audio=b"audio", language_code="en-GB")

        assert [w["word"] for w in words] == ["hello", "world", "again"]
        url = session.post.call_args.args[0]
        assert url == "https://speech.example.com/v1/speech:recognize"
        assert session.post.call_args.kwargs["params"] == {"key": "secret"}
        sent = orjson.loads(session.post.call_args.kwargs["data"])
        assert sent["config"]["languageCode"] == "en-GB"

    @pytest.mark.asyncio
    async def test_missing_api_key(self) -> None:
        recognizer = GoogleSpeechRecognizer(api_key="", session=mock_session())

        with pytest.raises(RecognitionError) as exc_info:
            await recognizer.recognize(audio=b"audio", language_code="en-GB")
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_transient_status_is_retried(self) -> None:
        session = mock_session((503, b"unavailable"), (200, RESPONSE))
        recognizer = GoogleSpeechRecognizer(api_key="k", session=session)

        words = await recognizer.recognize(audio=b"audio", language_code="en-GB")

        assert len(words) == 3
        assert session.post.call_count == 2

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self) -> None:
        session = mock_session((400, b"bad request"), (200, RESPONSE))
        recognizer = GoogleSpeechRecognizer(api_key="k", session=session)

        with pytest.raises(RecognitionError) as exc_info:
            await recognizer.recognize(audio=b"audio", language_code="en-GB")

        assert exc_info.value.retryable is False
        assert session.post.call_count == 1

    @pytest.mark.asyncio
    async def test_invalid_json_body(self) -> None:
        recognizer = GoogleSpeechRecognizer(api_key="k", session=mock_session((200, b"<html>")))

        with pytest.raises(RecognitionError):
            await recognizer.recognize(audio=b"audio", language_code="en-GB")

    @pytest.mark.asyncio
    async def test_timeout_raises_retryable_error(self) -> None:
        recognizer = GoogleSpeechRecognizer(api_key="k", timeout_seconds=0.01)

        async def slow_post(**kwargs: Any) -> dict[str, Any]:
            await asyncio.sleep(1)
            return RESPONSE

        with patch.object(recognizer, "_post_json", side_effect=slow_post):
            with pytest.raises(RecognitionError) as exc_info:
                await recognizer.recognize(audio=b"audio", language_code="en-GB")

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_connection_errors_surface_as_recognition_error(self) -> None:
        recognizer = GoogleSpeechRecognizer(api_key="k")

        with patch.object(
            recognizer,
            "_post_json",
            new=AsyncMock(side_effect=aiohttp.ClientConnectionError("refused")),
        ):
            with pytest.raises(RecognitionError):
                await recognizer.recognize(audio=b"audio", language_code="en-GB")

    @pytest.mark.asyncio
    async def test_external_session_is_not_closed(self) -> None:
        session = mock_session()
        async with GoogleSpeechRecognizer(api_key="k", session=session):
            pass

        session.close.assert_not_awaited()
