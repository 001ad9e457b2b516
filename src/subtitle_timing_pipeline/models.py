"""Models for the subtitle timing pipeline.

This module contains the data structures that flow through the pipeline:
reference tokens, recognizer words, alignment entries, and the enhanced
timings returned to callers, plus the typed result wrapper that tells real
alignments apart from fallback timings.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TokenClass(StrEnum):
    """Classes of reference tokens produced by the tokenizer."""

    WORD = "word"
    PUNCTUATION = "punctuation"
    NUMBER = "number"
    CJK = "cjk"
    LATIN = "latin"
    OTHER = "other"


class TimingSource(StrEnum):
    """Where an enhanced timing came from."""

    DETECTED = "detected"
    INTERPOLATED = "interpolated"
    PUNCTUATION_ATTACHED = "punctuation_attached"
    PUNCTUATION_START = "punctuation_start"
    FALLBACK = "fallback"


class FallbackReason(StrEnum):
    """Why a result fell back to uniform timing."""

    AUDIO_UNAVAILABLE = "audio_unavailable"
    RECOGNIZER_FAILED = "recognizer_failed"
    NO_RECOGNIZED_WORDS = "no_recognized_words"
    PROCESSING_ERROR = "processing_error"
    DUPLICATE_ITEM = "duplicate_item"


@dataclass(frozen=True)
class Token:
    """One unit of the reference text.

    Attributes:
        surface_form: Text fragment as it appeared in the reference.
        clean_form: Lower-cased form used only for comparison.
        position: Zero-based index within the token stream.
        token_class: Class that drives alignment thresholds and interpolation.
    """

    surface_form: str
    clean_form: str
    position: int
    token_class: TokenClass

    @property
    def is_punctuation(self) -> bool:
        return self.token_class is TokenClass.PUNCTUATION

    def __str__(self) -> str:
        return f"{self.token_class}({self.surface_form})"


@dataclass(frozen=True)
class RecognizedWord:
    """Word hypothesis from the speech recognizer.

    Attributes:
        word: Recognizer transcription of a spoken unit.
        start: Start time in seconds.
        end: End time in seconds.
    """

    word: str
    start: float
    end: float

    def __str__(self) -> str:
        return f"{self.word}: {self.start} - {self.end}"


@dataclass(frozen=True)
class Interval:
    """Closed time interval in seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class AlignmentEntry:
    """Alignment outcome for a single reference token.

    Attributes:
        token_position: Position of the token this entry belongs to.
        matched_interval: Interval of the matched recognizer word, if any.
        similarity_score: Score that justified the match, 0 when unmatched.
        is_punctuation_skip: True for punctuation, which is never matched.
        recognized_index: Index of the claimed recognizer word, if any.
    """

    token_position: int
    matched_interval: Interval | None = None
    similarity_score: float = 0.0
    is_punctuation_skip: bool = False
    recognized_index: int | None = None

    @property
    def is_matched(self) -> bool:
        return self.matched_interval is not None


@dataclass(frozen=True)
class AlignmentResult:
    """Complete output of one aligner run.

    Behaves as a read-only sequence of entries, one per token.

    Attributes:
        entries: Alignment entries in token order.
        claimed_indices: Recognizer word indices consumed by matches.
    """

    entries: tuple[AlignmentEntry, ...]
    claimed_indices: frozenset[int] = field(default_factory=frozenset)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[AlignmentEntry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> AlignmentEntry:
        return self.entries[index]

    @property
    def matched_count(self) -> int:
        return sum(1 for entry in self.entries if entry.is_matched)


@dataclass(frozen=True)
class EnhancedTiming:
    """Final timing for one reference token.

    Attributes:
        token: Surface form of the token.
        start: Start time in seconds.
        end: End time in seconds.
        source: How the timing was produced.
        token_class: Class of the underlying token.
    """

    token: str
    start: float
    end: float
    source: TimingSource
    token_class: TokenClass

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the caller-facing payload shape."""
        return {
            "token": self.token,
            "start": self.start,
            "end": self.end,
            "source": str(self.source),
            "tokenClass": str(self.token_class),
        }


@dataclass(frozen=True)
class AlignedTimings:
    """Timings backed by a real recognizer alignment."""

    timings: list[EnhancedTiming]
    matched_count: int = 0
    recognized_count: int = 0

    @property
    def is_fallback(self) -> bool:
        return False


@dataclass(frozen=True)
class FallbackTimings:
    """Uniform timings used when the recognizer path could not be used."""

    timings: list[EnhancedTiming]
    reason: FallbackReason
    detail: str | None = None

    @property
    def is_fallback(self) -> bool:
        return True


TimingResult = AlignedTimings | FallbackTimings


class TimingRequest(BaseModel):
    """One item of work for the pipeline.

    Accepts both snake_case field names and the camelCase keys used by the
    controller layer (``languageCode``, ``audioReference``, ``id``).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    text: str
    language_code: str = Field(default="", alias="languageCode")
    audio_reference: str | None = Field(default=None, alias="audioReference")
    identifier: str | None = Field(default=None, alias="id")
