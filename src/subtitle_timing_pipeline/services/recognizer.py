"""Speech recognizer client and recognizer output normalization.

The recognizer is an external collaborator. ``GoogleSpeechRecognizer`` talks to
the Speech-to-Text v1 REST API; the normalization helpers accept the shapes
that API (and its client libraries) emit and turn them into immutable
``RecognizedWord`` values.
"""

import asyncio
import base64
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Final, Protocol

import aiohttp
import orjson as json
from aiohttp import ClientSession, ClientTimeout
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from subtitle_timing_pipeline.constants import (
    DEFAULT_LOCALE,
    DEFAULT_RECOGNITION_TIMEOUT,
    DEFAULT_RECOGNIZER_MODEL,
    GOOGLE_SPEECH_API_KEY,
    GOOGLE_SPEECH_ENDPOINT,
    LOCALE_OVERRIDES,
)
from subtitle_timing_pipeline.exceptions import RecognitionError
from subtitle_timing_pipeline.models import RecognizedWord
from subtitle_timing_pipeline.tokenization.scripts import is_cjk_character

DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_BACKOFF_FACTOR: Final[float] = 0.5
NANOS_PER_SECOND: Final[float] = 1e9
RETRYABLE_STATUSES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})

RawWord = Mapping[str, Any] | RecognizedWord


class TransientRecognitionError(RecognitionError):
    """Recognizer failure worth retrying (rate limits, 5xx)."""

    def __init__(self, msg: str | None = None) -> None:
        super().__init__(msg, retryable=True)


class SpeechRecognizer(Protocol):
    """Produces word-level timestamps for an audio payload."""

    async def recognize(
        self, *, audio: bytes, language_code: str
    ) -> Sequence[RawWord]: ...


def to_recognizer_locale(
    language_code: str | None,
    *,
    overrides: Mapping[str, str] | None = None,
    default_locale: str = DEFAULT_LOCALE,
) -> str:
    """Map an application language code to the recognizer's locale.

    Generic Mandarin (``cmn-CN``) becomes ``cmn-Hans-CN``; an empty code
    becomes ``en-US``. Everything else passes through.
    """
    code = (language_code or "").strip()
    if not code:
        return default_locale
    mapping = LOCALE_OVERRIDES if overrides is None else overrides
    return mapping.get(code, code)


def parse_offset(value: Any) -> float:
    """Convert a recognizer time offset to seconds.

    Accepts plain numbers, duration strings such as ``"1.300s"`` and
    ``{"seconds": ..., "nanos": ...}`` mappings. Missing values are 0.

    Raises:
        ValueError: If the value has an unrecognized shape.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"Unsupported offset value: {value!r}")
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("s"):
            text = text[:-1]
        return float(text) if text else 0.0
    if isinstance(value, Mapping):
        seconds = float(value.get("seconds") or 0)
        nanos = float(value.get("nanos") or 0)
        return seconds + nanos / NANOS_PER_SECOND
    raise ValueError(f"Unsupported offset value: {value!r}")


def _word_bounds(raw: Mapping[str, Any]) -> tuple[float, float]:
    start_value = raw.get("start", raw.get("startTime", raw.get("start_time")))
    end_value = raw.get("end", raw.get("endTime", raw.get("end_time")))
    return parse_offset(start_value), parse_offset(end_value)


def normalize_recognized_words(raw_words: Iterable[RawWord] | None) -> list[RecognizedWord]:
    """Build a fresh list of recognizer words with seconds-based intervals.

    Entries without text or with unparsable offsets are dropped. Reversed
    intervals are swapped so that ``start <= end``.

    Args:
        raw_words: Recognizer output as mappings or ``RecognizedWord`` values.

    Returns:
        Normalized words in input order.
    """
    words: list[RecognizedWord] = []
    for raw in raw_words or ():
        if isinstance(raw, RecognizedWord):
            text, start, end = raw.word, raw.start, raw.end
        elif isinstance(raw, Mapping):
            text = str(raw.get("word") or "")
            try:
                start, end = _word_bounds(raw)
            except (TypeError, ValueError) as e:
                logger.debug(f"Dropping recognizer word with bad offsets {raw!r}: {e}")
                continue
        else:
            logger.debug(f"Dropping recognizer entry of type {type(raw).__name__}")
            continue

        text = text.strip()
        if not text:
            continue
        if end < start:
            start, end = end, start
        words.append(RecognizedWord(word=text, start=max(0.0, start), end=max(0.0, end)))
    return words


def split_cjk_words(words: Sequence[RecognizedWord]) -> list[RecognizedWord]:
    """Split multi-character CJK recognizer words into single characters.

    Each character gets an equal slice of the original interval. Words that
    contain no CJK characters are kept as they are.
    """
    split: list[RecognizedWord] = []
    for word in words:
        characters = [c for c in word.word if not c.isspace()]
        if len(characters) < 2 or not any(is_cjk_character(c) for c in characters):
            split.append(word)
            continue
        step = (word.end - word.start) / len(characters)
        for index, character in enumerate(characters):
            split.append(
                RecognizedWord(
                    word=character,
                    start=word.start + index * step,
                    end=word.start + (index + 1) * step,
                )
            )
    return split


def extract_word_offsets(response: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Collect word entries from a Speech-to-Text ``recognize`` response.

    Only the top alternative of each result is used.
    """
    words: list[dict[str, Any]] = []
    for result in response.get("results") or []:
        alternatives = result.get("alternatives") or []
        if not alternatives:
            continue
        words.extend(alternatives[0].get("words") or [])
    return words


class GoogleSpeechRecognizer:
    """Async Speech-to-Text v1 REST client with word time offsets."""

    def __init__(
        self,
        *,
        api_key: str = GOOGLE_SPEECH_API_KEY,
        endpoint: str = GOOGLE_SPEECH_ENDPOINT,
        model: str = DEFAULT_RECOGNIZER_MODEL,
        timeout_seconds: float = DEFAULT_RECOGNITION_TIMEOUT,
        locale_overrides: Mapping[str, str] | None = None,
        default_locale: str = DEFAULT_LOCALE,
        session: ClientSession | None = None,
    ) -> None:
        """Initialize the recognizer client.

        Args:
            api_key: Google API key sent as the ``key`` query parameter.
            endpoint: Base URL of the Speech-to-Text v1 API.
            model: Recognition model name.
            timeout_seconds: Budget for one recognition call, retries included.
            locale_overrides: Language code to recognizer locale mapping.
            default_locale: Locale used when no language code is given.
            session: Optional externally managed HTTP session.
        """
        self._api_key = api_key
        self._endpoint = endpoint.rstrip("/")
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._locale_overrides = dict(
            LOCALE_OVERRIDES if locale_overrides is None else locale_overrides
        )
        self._default_locale = default_locale
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "GoogleSpeechRecognizer":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        if self._session is None:
            self._session = ClientSession(timeout=ClientTimeout(total=self._timeout_seconds))
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def build_request(self, *, audio: bytes, language_code: str) -> dict[str, Any]:
        """Build the JSON body for a ``speech:recognize`` call."""
        return {
            "config": {
                "languageCode": to_recognizer_locale(
                    language_code,
                    overrides=self._locale_overrides,
                    default_locale=self._default_locale,
                ),
                "enableWordTimeOffsets": True,
                "model": self._model,
            },
            "audio": {"content": base64.b64encode(audio).decode("ascii")},
        }

    async def recognize(self, *, audio: bytes, language_code: str) -> list[dict[str, Any]]:
        """Recognize speech and return raw word offsets.

        Args:
            audio: Encoded audio payload.
            language_code: Application language code of the audio.

        Returns:
            Word entries with ``word``, ``startTime`` and ``endTime`` keys.

        Raises:
            RecognitionError: If the call fails or exceeds its time budget.
        """
        if not self._api_key:
            raise RecognitionError("GOOGLE_SPEECH_API_KEY is not configured", retryable=False)

        payload = self.build_request(audio=audio, language_code=language_code)
        try:
            response = await asyncio.wait_for(
                self._post_json(url=f"{self._endpoint}/speech:recognize", payload=payload),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise RecognitionError(
                f"Recognition timed out after {self._timeout_seconds}s", retryable=True
            ) from e
        except RecognitionError:
            raise
        except (aiohttp.ClientError, json.JSONDecodeError) as e:
            raise RecognitionError(f"Recognition request failed: {e!r}", retryable=False) from e

        words = extract_word_offsets(response)
        logger.debug(f"Recognizer returned {len(words)} words for {payload['config']['languageCode']}")
        return words

    @retry(  # type: ignore[misc]
        stop=stop_after_attempt(DEFAULT_MAX_RETRIES),
        wait=wait_exponential(multiplier=DEFAULT_BACKOFF_FACTOR),
        retry=retry_if_exception_type((aiohttp.ClientConnectionError, TransientRecognitionError)),
        reraise=True,
    )
    async def _post_json(self, *, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        session = await self._ensure_session()
        async with session.post(
            url,
            params={"key": self._api_key},
            data=json.dumps(payload),
            headers={"Content-Type": "application/json"},
        ) as response:
            body = await response.read()
            if response.status in RETRYABLE_STATUSES:
                raise TransientRecognitionError(
                    f"Recognizer returned HTTP {response.status}: {body[:200]!r}"
                )
            if response.status >= 400:
                raise RecognitionError(
                    f"Recognizer returned HTTP {response.status}: {body[:200]!r}",
                    retryable=False,
                )
        parsed = json.loads(body) if body else {}
        if not isinstance(parsed, dict):
            raise RecognitionError("Recognizer response is not a JSON object", retryable=False)
        return parsed
