"""Configuration for the subtitle timing pipeline.

Provides typed configuration models with environment-backed defaults, a YAML
loader, and an accessor that caches the environment configuration for reuse.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from subtitle_timing_pipeline.constants import (
    BACKWARD_OFFSET,
    CHARS_PER_WORD,
    CJK_LANGUAGE_CODES,
    CJK_SIMILARITY_THRESHOLD,
    CJK_TIME_UNIT_CHARACTERS,
    DEFAULT_DOWNLOAD_RETRIES,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_LOCALE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOOKAHEAD,
    DEFAULT_LOOKBEHIND,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_RECOGNITION_TIMEOUT,
    DEFAULT_RECOGNIZER_MODEL,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_WORDS_PER_SECOND,
    FALLBACK_WORD_DURATION,
    GAP_FILL_RATIO,
    GOOGLE_SPEECH_ENDPOINT,
    LOCALE_OVERRIDES,
    MAX_WORD_DURATION,
    MIN_WORD_DURATION,
    PUNCTUATION_DURATION,
    SPACE_SEPARATED_LANGUAGE_CODES,
)
from subtitle_timing_pipeline.exceptions import ConfigurationError

Ratio = Annotated[float, Field(ge=0.0, le=1.0)]
Seconds = Annotated[float, Field(gt=0.0)]


class TokenizerSettings(BaseModel):
    """Language routing and script handling for the tokenizer."""

    cjk_language_codes: list[str] = Field(default_factory=lambda: list(CJK_LANGUAGE_CODES))
    space_separated_language_codes: list[str] = Field(
        default_factory=lambda: list(SPACE_SEPARATED_LANGUAGE_CODES)
    )
    time_unit_characters: str = CJK_TIME_UNIT_CHARACTERS


class AlignmentSettings(BaseModel):
    """Search window and acceptance thresholds for the aligner."""

    lookbehind: Annotated[int, Field(ge=0, le=64)] = DEFAULT_LOOKBEHIND
    lookahead: Annotated[int, Field(ge=1, le=64)] = DEFAULT_LOOKAHEAD
    cjk_threshold: Ratio = CJK_SIMILARITY_THRESHOLD
    default_threshold: Ratio = DEFAULT_SIMILARITY_THRESHOLD


class InterpolationSettings(BaseModel):
    """Speech-rate and duration constants for gap filling."""

    default_words_per_second: Seconds = DEFAULT_WORDS_PER_SECOND
    chars_per_word: Seconds = CHARS_PER_WORD
    min_word_duration: Annotated[float, Field(ge=0.0)] = MIN_WORD_DURATION
    max_word_duration: Seconds = MAX_WORD_DURATION
    punctuation_duration: Annotated[float, Field(ge=0.0)] = PUNCTUATION_DURATION
    gap_fill_ratio: Ratio = GAP_FILL_RATIO
    backward_offset: Annotated[float, Field(ge=0.0)] = BACKWARD_OFFSET
    fallback_word_duration: Seconds = FALLBACK_WORD_DURATION

    @model_validator(mode="after")
    def validate_duration_bounds(self) -> InterpolationSettings:
        """Ensure the word duration clamp range is well formed."""
        if self.min_word_duration > self.max_word_duration:
            raise ValueError("min_word_duration must not exceed max_word_duration")
        return self


class ServiceSettings(BaseModel):
    """Timeouts and endpoints for the audio store and recognizer."""

    download_timeout_seconds: Seconds = DEFAULT_DOWNLOAD_TIMEOUT
    recognition_timeout_seconds: Seconds = DEFAULT_RECOGNITION_TIMEOUT
    download_retries: Annotated[int, Field(ge=1, le=10)] = DEFAULT_DOWNLOAD_RETRIES
    recognizer_endpoint: str = GOOGLE_SPEECH_ENDPOINT
    recognizer_model: str = DEFAULT_RECOGNIZER_MODEL
    locale_overrides: dict[str, str] = Field(default_factory=lambda: dict(LOCALE_OVERRIDES))
    default_locale: str = DEFAULT_LOCALE
    split_cjk_recognized_words: bool = True

    @field_validator("recognizer_endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Validate the recognizer endpoint carries a protocol."""
        if not v.startswith(("https://", "http://")):
            raise ValueError("recognizer_endpoint must include protocol (https://)")
        return v


class TimingConfig(BaseModel):
    """Complete pipeline configuration."""

    tokenizer: TokenizerSettings = Field(default_factory=TokenizerSettings)
    alignment: AlignmentSettings = Field(default_factory=AlignmentSettings)
    interpolation: InterpolationSettings = Field(default_factory=InterpolationSettings)
    services: ServiceSettings = Field(default_factory=ServiceSettings)

    max_concurrency: Annotated[int, Field(ge=1, le=512)] = DEFAULT_MAX_CONCURRENCY
    log_level: str = DEFAULT_LOG_LEVEL
    metrics_enabled: bool = False

    @classmethod
    def from_env(cls) -> TimingConfig:
        def _int(name: str, default: int) -> int:
            try:
                return int(os.getenv(name, str(default)))
            except (ValueError, TypeError):
                return default

        def _float(name: str, default: float) -> float:
            try:
                return float(os.getenv(name, str(default)))
            except (ValueError, TypeError):
                return default

        def _bool(name: str, default: bool) -> bool:
            v = os.getenv(name)
            if v is None:
                return default
            return v.lower() in {"1", "true", "yes", "on"}

        return cls(
            max_concurrency=_int("TIMING_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY),
            services=ServiceSettings(
                download_timeout_seconds=_float(
                    "TIMING_DOWNLOAD_TIMEOUT", DEFAULT_DOWNLOAD_TIMEOUT
                ),
                recognition_timeout_seconds=_float(
                    "TIMING_RECOGNITION_TIMEOUT", DEFAULT_RECOGNITION_TIMEOUT
                ),
            ),
            log_level=os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL),
            metrics_enabled=_bool("TIMING_METRICS_ENABLED", False),
        )


@lru_cache(maxsize=1)
def get_timing_config() -> TimingConfig:
    """Load and cache the timing configuration from environment."""
    return TimingConfig.from_env()


def _apply_env_overrides(*, config: TimingConfig) -> TimingConfig:
    """Override loaded values with environment variables when present."""
    overrides: dict[str, Any] = {}
    service_overrides: dict[str, Any] = {}

    if os.getenv("TIMING_MAX_CONCURRENCY"):
        overrides["max_concurrency"] = os.getenv("TIMING_MAX_CONCURRENCY")
    if os.getenv("LOG_LEVEL"):
        overrides["log_level"] = os.getenv("LOG_LEVEL")
    if os.getenv("TIMING_METRICS_ENABLED"):
        overrides["metrics_enabled"] = os.getenv("TIMING_METRICS_ENABLED", "false").lower() in {
            "1",
            "true",
            "yes",
            "on",
        }
    if os.getenv("TIMING_DOWNLOAD_TIMEOUT"):
        service_overrides["download_timeout_seconds"] = os.getenv("TIMING_DOWNLOAD_TIMEOUT")
    if os.getenv("TIMING_RECOGNITION_TIMEOUT"):
        service_overrides["recognition_timeout_seconds"] = os.getenv("TIMING_RECOGNITION_TIMEOUT")

    if not overrides and not service_overrides:
        return config

    raw = config.model_dump()
    raw.update(overrides)
    raw["services"].update(service_overrides)
    try:
        return TimingConfig(**raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid environment override: {e}") from e


def load_config(*, config_path: str | Path | None = None) -> TimingConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file. Defaults are used
            when omitted.

    Returns:
        Configuration object with environment overrides applied.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or invalid.
    """
    if config_path is None:
        config = TimingConfig()
    else:
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            with config_file.open("r", encoding="utf-8") as file:
                raw_config = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML config: {e}") from e

        if not isinstance(raw_config, dict):
            raise ConfigurationError(f"Config root must be a mapping: {config_path}")

        try:
            config = TimingConfig(**raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        logger.info(f"Config loaded from {config_path}")

    return _apply_env_overrides(config=config)
