"""
Core processing logic for the subtitle timing pipeline.

This module wires the tokenizer, aligner and interpolator to the injected
audio store and speech recognizer. Every recoverable failure on the way to a
real alignment turns into uniform fallback timings for the affected item, so
callers always receive one timing per reference token.
"""

import asyncio
import time
from dataclasses import replace
from collections.abc import Awaitable, Iterable, Mapping, Sequence
from typing import Any, Final, TypeVar

from loguru import logger
from pydantic import ValidationError

from subtitle_timing_pipeline.alignment import (
    Aligner,
    Interpolator,
    WindowedGreedyAligner,
    create_fallback_timings,
)
from subtitle_timing_pipeline.config import TimingConfig
from subtitle_timing_pipeline.constants import METRICS_NAMESPACE
from subtitle_timing_pipeline.exceptions import (
    AudioDownloadError,
    InvalidTextError,
    RecognitionError,
)
from subtitle_timing_pipeline.models import (
    AlignedTimings,
    EnhancedTiming,
    FallbackReason,
    FallbackTimings,
    RecognizedWord,
    TimingRequest,
    TimingResult,
    Token,
)
from subtitle_timing_pipeline.services.audio_store import AudioStore
from subtitle_timing_pipeline.services.recognizer import (
    RawWord,
    SpeechRecognizer,
    normalize_recognized_words,
    split_cjk_words,
)
from subtitle_timing_pipeline.tokenization import (
    TokenizationMode,
    resolve_tokenization_mode,
    tokenize,
)
from subtitle_timing_pipeline.utils.logging import emit_emf_metric

T = TypeVar("T")

PIPELINE_DIMENSION: Final[str] = "SubtitleTiming"

BatchItem = TimingRequest | Mapping[str, Any]


class TimingPipeline:
    """Produces word-level timings for reference text and matching audio.

    Attributes:
        audio_store: Source of audio bytes.
        recognizer: Speech recognizer producing word offsets.
        aligner: Strategy matching tokens to recognizer words.
        interpolator: Gap filler for unmatched tokens.
        config: Pipeline configuration.
    """

    def __init__(
        self,
        *,
        audio_store: AudioStore,
        recognizer: SpeechRecognizer,
        aligner: Aligner | None = None,
        interpolator: Interpolator | None = None,
        config: TimingConfig | None = None,
    ) -> None:
        self.config = config or TimingConfig()
        self.audio_store = audio_store
        self.recognizer = recognizer
        self.aligner = aligner or WindowedGreedyAligner(self.config.alignment)
        self.interpolator = interpolator or Interpolator(self.config.interpolation)

    def _fallback(
        self, tokens: Sequence[Token], *, reason: FallbackReason, detail: str | None = None
    ) -> FallbackTimings:
        logger.warning(
            f"Using fallback timings for {len(tokens)} tokens ({reason})"
            + (f": {detail}" if detail else "")
        )
        return FallbackTimings(
            timings=create_fallback_timings(
                tokens, word_duration=self.config.interpolation.fallback_word_duration
            ),
            reason=reason,
            detail=detail,
        )

    def _prepare_recognized(
        self, recognized: Iterable[RawWord] | None, *, language_code: str | None
    ) -> list[RecognizedWord]:
        words = normalize_recognized_words(recognized)
        mode = resolve_tokenization_mode(language_code, settings=self.config.tokenizer)
        if mode is TokenizationMode.CHARACTER and self.config.services.split_cjk_recognized_words:
            return split_cjk_words(words)
        return words

    def enhance_word_timings(
        self,
        text: str,
        recognized: Iterable[RawWord] | None,
        language_code: str | None,
    ) -> TimingResult:
        """Align reference text against recognizer words and fill the gaps.

        Args:
            text: Reference text.
            recognized: Recognizer words as mappings or ``RecognizedWord`` values.
            language_code: Language of the text.

        Returns:
            Aligned timings, or fallback timings when there is nothing to align
            against or alignment fails unexpectedly.

        Raises:
            InvalidTextError: If ``text`` is not a string.
        """
        tokens = tokenize(text, language_code, settings=self.config.tokenizer)
        if not tokens:
            return AlignedTimings(timings=[])

        words = self._prepare_recognized(recognized, language_code=language_code)
        if not words:
            return self._fallback(tokens, reason=FallbackReason.NO_RECOGNIZED_WORDS)

        try:
            alignment = self.aligner.align(tokens, words)
            timings = self.interpolator.interpolate(tokens, alignment)
        except Exception as e:
            logger.exception(f"Alignment failed for {len(tokens)} tokens")
            return self._fallback(tokens, reason=FallbackReason.PROCESSING_ERROR, detail=repr(e))

        matched = sum(1 for entry in alignment if entry.is_matched)
        logger.info(f"Aligned {matched}/{len(tokens)} tokens using {len(words)} recognized words")
        return AlignedTimings(timings=timings, matched_count=matched, recognized_count=len(words))

    async def _fetch_audio(self, reference: str | None) -> bytes | None:
        if not reference:
            logger.warning("No audio reference provided")
            return None
        try:
            return await asyncio.wait_for(
                self.audio_store.fetch(reference=reference),
                timeout=self.config.services.download_timeout_seconds,
            )
        except (AudioDownloadError, asyncio.TimeoutError) as e:
            logger.warning(f"Audio unavailable for {reference}: {e!r}")
            return None
        except Exception as e:
            logger.exception(f"Unexpected error fetching audio {reference}: {e!r}")
            return None

    async def _recognize(self, *, audio: bytes, language_code: str | None) -> Sequence[RawWord]:
        return await asyncio.wait_for(
            self.recognizer.recognize(audio=audio, language_code=language_code or ""),
            timeout=self.config.services.recognition_timeout_seconds,
        )

    async def _process_with_audio(
        self, *, text: str, language_code: str | None, audio: bytes | None
    ) -> TimingResult:
        tokens = tokenize(text, language_code, settings=self.config.tokenizer)
        if not tokens:
            return AlignedTimings(timings=[])
        if audio is None:
            return self._fallback(tokens, reason=FallbackReason.AUDIO_UNAVAILABLE)

        try:
            recognized = await self._recognize(audio=audio, language_code=language_code)
        except (RecognitionError, asyncio.TimeoutError) as e:
            return self._fallback(tokens, reason=FallbackReason.RECOGNIZER_FAILED, detail=repr(e))
        except Exception as e:
            logger.exception(f"Unexpected recognizer error: {e!r}")
            return self._fallback(tokens, reason=FallbackReason.RECOGNIZER_FAILED, detail=repr(e))

        return self.enhance_word_timings(text, recognized, language_code)

    def _record_metrics(
        self, *, result: TimingResult, language_code: str | None, elapsed_ms: float
    ) -> None:
        if not self.config.metrics_enabled:
            return
        metrics = {
            "TokenCount": float(len(result.timings)),
            "MatchedTokens": float(
                result.matched_count if isinstance(result, AlignedTimings) else 0
            ),
            "Fallback": 1.0 if result.is_fallback else 0.0,
            "ItemMs": elapsed_ms,
        }
        emit_emf_metric(
            namespace=METRICS_NAMESPACE,
            metrics=metrics,
            dimensions={"Pipeline": PIPELINE_DIMENSION, "Language": language_code or "unknown"},
        )

    async def produce_timing_result(
        self, text: str, language_code: str | None, audio_reference: str | None
    ) -> TimingResult:
        """Produce timings for one reference text and its audio.

        Download failures, recognizer failures and empty recognizer output
        never raise; they yield ``FallbackTimings``.

        Args:
            text: Reference text.
            language_code: Language of the text and audio.
            audio_reference: Location of the audio.

        Returns:
            Typed timing result, one timing per token.

        Raises:
            InvalidTextError: If ``text`` is not a string.
        """
        if not isinstance(text, str):
            raise InvalidTextError(f"Reference text must be a string, got {type(text).__name__}")

        started = time.perf_counter()
        if not text.strip():
            return AlignedTimings(timings=[])

        audio = await self._fetch_audio(audio_reference)
        result = await self._process_with_audio(
            text=text, language_code=language_code, audio=audio
        )
        self._record_metrics(
            result=result,
            language_code=language_code,
            elapsed_ms=(time.perf_counter() - started) * 1000.0,
        )
        return result

    async def produce_timings(
        self, text: str, language_code: str | None, audio_reference: str | None
    ) -> list[EnhancedTiming]:
        """Same as ``produce_timing_result`` but returns the bare timing list."""
        result = await self.produce_timing_result(text, language_code, audio_reference)
        return result.timings

    @staticmethod
    def coerce_request(item: BatchItem, *, index: int) -> TimingRequest:
        if isinstance(item, TimingRequest):
            return item
        try:
            return TimingRequest.model_validate(item)
        except ValidationError as e:
            raise InvalidTextError(f"Invalid batch item at index {index}: {e}") from e

    def _dedupe_key(self, request: TimingRequest) -> tuple[TokenizationMode, str]:
        mode = resolve_tokenization_mode(request.language_code, settings=self.config.tokenizer)
        return mode, " ".join(request.text.split())

    def _plan_batch(self, requests: Sequence[TimingRequest]) -> tuple[list[int], dict[int, int]]:
        """Split requests into unique items and duplicates of earlier items.

        Returns:
            Tuple of (indices to process, duplicate index -> first occurrence).
        """
        unique: list[int] = []
        duplicates: dict[int, int] = {}
        seen_ids: dict[str, int] = {}
        seen_texts: dict[tuple[TokenizationMode, str], int] = {}

        for index, request in enumerate(requests):
            key = self._dedupe_key(request)
            first = seen_ids.get(request.identifier) if request.identifier is not None else None
            if first is None:
                first = seen_texts.get(key)
            if first is not None:
                logger.warning(
                    f"Skipping duplicate batch item {index} "
                    f"(id={request.identifier!r}), first seen at {first}"
                )
                duplicates[index] = first
                continue

            if request.identifier is not None:
                seen_ids[request.identifier] = index
            seen_texts.setdefault(key, index)
            unique.append(index)

        return unique, duplicates

    async def produce_timing_results_batch(
        self, items: Sequence[BatchItem]
    ) -> list[TimingResult]:
        """Produce timings for many items concurrently.

        Duplicate items are processed once. Each item falls back on its own;
        one failing item never affects the others.

        Args:
            items: ``TimingRequest`` values or mappings with ``text``,
                ``languageCode``, ``audioReference`` and optional ``id`` keys.

        Returns:
            One result per input item, in input order.

        Raises:
            InvalidTextError: If an item is malformed.
        """
        requests = [self.coerce_request(item, index=i) for i, item in enumerate(items)]
        if not requests:
            return []

        unique, duplicates = self._plan_batch(requests)
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def bounded(coro: Awaitable[T]) -> T:
            async with semaphore:
                return await coro

        started = time.perf_counter()
        audios = await asyncio.gather(
            *(bounded(self._fetch_audio(requests[i].audio_reference)) for i in unique)
        )
        outcomes = await asyncio.gather(
            *(
                bounded(
                    self._process_with_audio(
                        text=requests[i].text,
                        language_code=requests[i].language_code,
                        audio=audio,
                    )
                )
                for i, audio in zip(unique, audios)
            ),
            return_exceptions=True,
        )

        results: dict[int, TimingResult] = {}
        for index, outcome in zip(unique, outcomes):
            request = requests[index]
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(f"Batch item {index} failed: {outcome!r}")
                tokens = tokenize(
                    request.text, request.language_code, settings=self.config.tokenizer
                )
                outcome = self._fallback(
                    tokens, reason=FallbackReason.PROCESSING_ERROR, detail=repr(outcome)
                )
            results[index] = outcome
            self._record_metrics(
                result=outcome,
                language_code=request.language_code,
                elapsed_ms=(time.perf_counter() - started) * 1000.0,
            )

        for index, first in duplicates.items():
            request = requests[index]
            if self._dedupe_key(request) == self._dedupe_key(requests[first]):
                original = results[first]
                results[index] = replace(original, timings=list(original.timings))
                continue
            tokens = tokenize(request.text, request.language_code, settings=self.config.tokenizer)
            results[index] = self._fallback(
                tokens,
                reason=FallbackReason.DUPLICATE_ITEM,
                detail=f"duplicate of item {first}",
            )

        logger.info(
            f"Batch finished: {len(requests)} items, {len(unique)} processed, "
            f"{sum(1 for r in results.values() if r.is_fallback)} fallbacks"
        )
        return [results[i] for i in range(len(requests))]

    async def produce_timings_batch(
        self, items: Sequence[BatchItem]
    ) -> list[list[EnhancedTiming]]:
        """Same as ``produce_timing_results_batch`` but returns bare timing lists."""
        return [result.timings for result in await self.produce_timing_results_batch(items)]
