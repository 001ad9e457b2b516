"""Timing interpolation for tokens the recognizer did not confidently detect.

Matched tokens keep their recognizer interval. Punctuation is attached to the
end of whatever was emitted before it. Every other unmatched token is placed
using its nearest timed neighbours and an estimated local speech rate.
"""

from collections.abc import Sequence

from loguru import logger

from subtitle_timing_pipeline.config import InterpolationSettings
from subtitle_timing_pipeline.exceptions import AlignmentError
from subtitle_timing_pipeline.models import (
    AlignmentEntry,
    EnhancedTiming,
    Interval,
    TimingSource,
    Token,
)


def create_fallback_timings(
    tokens: Sequence[Token], *, word_duration: float = 0.6
) -> list[EnhancedTiming]:
    """Assign every token a fixed-length slot in sequence order.

    Args:
        tokens: Reference tokens.
        word_duration: Length of each slot in seconds.

    Returns:
        Timings with ``start = i * word_duration`` for token index ``i``.
    """
    return [
        EnhancedTiming(
            token=token.surface_form,
            start=index * word_duration,
            end=(index + 1) * word_duration,
            source=TimingSource.FALLBACK,
            token_class=token.token_class,
        )
        for index, token in enumerate(tokens)
    ]


class Interpolator:
    """Builds complete timings from a partial alignment.

    Attributes:
        settings: Speech-rate defaults and duration bounds.
    """

    def __init__(self, settings: InterpolationSettings | None = None) -> None:
        self.settings = settings or InterpolationSettings()

    def estimate_speech_rate(self, alignment: Sequence[AlignmentEntry]) -> float:
        """Average matched words per second over the detected span.

        Falls back to the configured default with fewer than two matches or a
        zero-length span.
        """
        intervals = [entry.matched_interval for entry in alignment if entry.matched_interval]
        if len(intervals) > 1:
            total_duration = max(i.end for i in intervals) - min(i.start for i in intervals)
            if total_duration > 0:
                return len(intervals) / total_duration
        return self.settings.default_words_per_second

    def estimate_word_duration(self, token: Token, *, words_per_second: float) -> float:
        """Estimate how long a token takes to say, longer tokens getting more time."""
        raw = len(token.surface_form) / (words_per_second * self.settings.chars_per_word)
        return max(self.settings.min_word_duration, min(self.settings.max_word_duration, raw))

    def interpolate(
        self, tokens: Sequence[Token], alignment: Sequence[AlignmentEntry]
    ) -> list[EnhancedTiming]:
        """Produce one timing per token.

        Args:
            tokens: Reference tokens in position order.
            alignment: Aligner output, one entry per token.

        Returns:
            Timings in token order.

        Raises:
            AlignmentError: If the alignment does not cover the tokens.
        """
        if len(tokens) != len(alignment):
            raise AlignmentError(
                f"Alignment has {len(alignment)} entries for {len(tokens)} tokens"
            )

        words_per_second = self.estimate_speech_rate(alignment)
        timings: list[EnhancedTiming] = []

        for index, (token, entry) in enumerate(zip(tokens, alignment)):
            if entry.matched_interval is not None:
                interval = entry.matched_interval
                timings.append(
                    self._timing(token, interval.start, interval.end, TimingSource.DETECTED)
                )
            elif entry.is_punctuation_skip or token.is_punctuation:
                previous = timings[-1] if timings else None
                timings.append(self._attach_punctuation(token, previous=previous))
            else:
                start, end = self._interpolate_token(
                    index=index,
                    tokens=tokens,
                    alignment=alignment,
                    timings=timings,
                    words_per_second=words_per_second,
                )
                timings.append(self._timing(token, start, end, TimingSource.INTERPOLATED))

        logger.debug(
            f"Interpolated {len(timings)} timings at {words_per_second:.2f} words/sec"
        )
        return timings

    @staticmethod
    def _timing(token: Token, start: float, end: float, source: TimingSource) -> EnhancedTiming:
        start = max(0.0, start)
        return EnhancedTiming(
            token=token.surface_form,
            start=start,
            end=max(start, end),
            source=source,
            token_class=token.token_class,
        )

    def _attach_punctuation(
        self, token: Token, *, previous: EnhancedTiming | None
    ) -> EnhancedTiming:
        if previous is None:
            return self._timing(
                token, 0.0, self.settings.punctuation_duration, TimingSource.PUNCTUATION_START
            )
        return self._timing(
            token,
            previous.end,
            previous.end + self.settings.punctuation_duration,
            TimingSource.PUNCTUATION_ATTACHED,
        )

    @staticmethod
    def _gap_bounds(alignment: Sequence[AlignmentEntry], index: int) -> tuple[int, int]:
        """Return the first and last index of the unmatched run containing ``index``."""
        first = index
        while first > 0 and not alignment[first - 1].is_matched:
            first -= 1
        last = index
        while last < len(alignment) - 1 and not alignment[last + 1].is_matched:
            last += 1
        return first, last

    def _interpolate_token(
        self,
        *,
        index: int,
        tokens: Sequence[Token],
        alignment: Sequence[AlignmentEntry],
        timings: list[EnhancedTiming],
        words_per_second: float,
    ) -> tuple[float, float]:
        token = tokens[index]
        duration = self.estimate_word_duration(token, words_per_second=words_per_second)

        first, last = self._gap_bounds(alignment, index)
        previous = timings[-1] if timings else None
        future: Interval | None = (
            alignment[last + 1].matched_interval if last + 1 < len(alignment) else None
        )

        if previous is not None and future is not None:
            gap_size = last - first + 1
            time_per_word = max(0.0, future.start - previous.end) / gap_size
            start = previous.end + (index - first) * time_per_word
            return start, start + min(time_per_word * self.settings.gap_fill_ratio, duration)

        if previous is not None:
            return previous.end, previous.end + duration

        if future is not None:
            end = max(0.0, future.start - self.settings.backward_offset)
            return max(0.0, end - duration), end

        start = token.position / words_per_second
        return start, start + duration
