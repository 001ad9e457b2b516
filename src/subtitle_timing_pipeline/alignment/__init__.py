"""
Token alignment and timing reconstruction.

This package contains the pieces that turn recognizer output into timings:
- similarity.py: Normalized edit-distance scoring between words
- aligner.py: Windowed greedy matching of tokens to recognizer words
- interpolation.py: Gap filling, punctuation attachment and fallback timings
"""

from subtitle_timing_pipeline.alignment.aligner import Aligner, WindowedGreedyAligner
from subtitle_timing_pipeline.alignment.interpolation import Interpolator, create_fallback_timings
from subtitle_timing_pipeline.alignment.similarity import clean_for_comparison, similarity

__all__ = [
    "Aligner",
    "Interpolator",
    "WindowedGreedyAligner",
    "clean_for_comparison",
    "create_fallback_timings",
    "similarity",
]
