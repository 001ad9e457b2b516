"""Pipeline orchestration."""

from subtitle_timing_pipeline.core.processor import TimingPipeline

__all__ = ["TimingPipeline"]
