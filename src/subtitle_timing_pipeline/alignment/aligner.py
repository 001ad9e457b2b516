"""Windowed greedy alignment of reference tokens to recognizer words.

The aligner walks the reference tokens once, left to right, keeping a cursor
into the recognizer word list that only moves forward. Each token looks for
its best match inside a small window around the cursor; a recognizer word can
be claimed by at most one token.
"""

from collections.abc import Sequence
from typing import Protocol

from loguru import logger

from subtitle_timing_pipeline.alignment.similarity import similarity
from subtitle_timing_pipeline.config import AlignmentSettings
from subtitle_timing_pipeline.models import (
    AlignmentEntry,
    AlignmentResult,
    Interval,
    RecognizedWord,
    Token,
    TokenClass,
)


class Aligner(Protocol):
    """Strategy that maps reference tokens onto recognizer words."""

    def align(
        self, tokens: Sequence[Token], recognized: Sequence[RecognizedWord]
    ) -> AlignmentResult: ...


class WindowedGreedyAligner:
    """Greedy aligner with a bounded lookbehind/lookahead window.

    Attributes:
        settings: Window bounds and acceptance thresholds.
    """

    def __init__(self, settings: AlignmentSettings | None = None) -> None:
        self.settings = settings or AlignmentSettings()

    def threshold_for(self, token: Token) -> float:
        """Return the minimum similarity a match for this token must exceed."""
        if token.token_class is TokenClass.CJK:
            return self.settings.cjk_threshold
        return self.settings.default_threshold

    def _find_best_candidate(
        self,
        *,
        token: Token,
        recognized: Sequence[RecognizedWord],
        cursor: int,
        claimed: set[int],
    ) -> tuple[int | None, float]:
        """Find the best unclaimed candidate in the window around the cursor.

        Returns:
            Tuple of (candidate index, score), index None if nothing clears
            the token's threshold.
        """
        search_start = max(0, cursor - self.settings.lookbehind)
        search_end = min(len(recognized), cursor + self.settings.lookahead)
        minimum = self.threshold_for(token)

        best_index: int | None = None
        best_score = 0.0
        for index in range(search_start, search_end):
            if index in claimed:
                continue
            score = similarity(token.clean_form, recognized[index].word)
            if score > best_score and score > minimum:
                best_score = score
                best_index = index

        return best_index, best_score

    def align(
        self, tokens: Sequence[Token], recognized: Sequence[RecognizedWord]
    ) -> AlignmentResult:
        """Align tokens to recognizer words.

        Args:
            tokens: Reference tokens in position order.
            recognized: Recognizer words, expected in roughly ascending time.

        Returns:
            One entry per token plus the set of claimed recognizer indices.
        """
        entries: list[AlignmentEntry] = []
        claimed: set[int] = set()
        cursor = 0

        for token in tokens:
            if token.is_punctuation:
                entries.append(
                    AlignmentEntry(token_position=token.position, is_punctuation_skip=True)
                )
                continue

            best_index, best_score = self._find_best_candidate(
                token=token, recognized=recognized, cursor=cursor, claimed=claimed
            )

            if best_index is None:
                entries.append(AlignmentEntry(token_position=token.position))
                continue

            match = recognized[best_index]
            claimed.add(best_index)
            entries.append(
                AlignmentEntry(
                    token_position=token.position,
                    matched_interval=Interval(start=match.start, end=match.end),
                    similarity_score=best_score,
                    recognized_index=best_index,
                )
            )
            cursor = max(cursor, best_index + 1)

        logger.debug(
            f"Aligned {len(claimed)}/{len(tokens)} tokens against {len(recognized)} recognized words"
        )
        return AlignmentResult(entries=tuple(entries), claimed_indices=frozenset(claimed))
