"""
Subtitle timing pipeline.

Turns reference text plus noisy recognizer word timestamps into a complete,
ordered timing for every token of the text.
"""

from subtitle_timing_pipeline.config import TimingConfig, get_timing_config, load_config
from subtitle_timing_pipeline.core import TimingPipeline
from subtitle_timing_pipeline.models import (
    AlignedTimings,
    EnhancedTiming,
    FallbackReason,
    FallbackTimings,
    RecognizedWord,
    TimingRequest,
    TimingResult,
    TimingSource,
    Token,
    TokenClass,
)
from subtitle_timing_pipeline.tokenization import tokenize

__version__ = "0.1.0"

__all__ = [
    "AlignedTimings",
    "EnhancedTiming",
    "FallbackReason",
    "FallbackTimings",
    "RecognizedWord",
    "TimingConfig",
    "TimingPipeline",
    "TimingRequest",
    "TimingResult",
    "TimingSource",
    "Token",
    "TokenClass",
    "get_timing_config",
    "load_config",
    "tokenize",
]
