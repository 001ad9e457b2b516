"""Configuration constants for the subtitle timing pipeline.

This module provides centralized access to default values and environment-backed
secrets. It loads the .env file once at module import and exposes all values as
typed constants.
"""

import os
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

_PROJECT_ROOT: Final[Path] = Path(__file__).parent.parent.parent
_ENV_FILE: Final[Path] = _PROJECT_ROOT / ".env"

load_dotenv(_ENV_FILE)

GOOGLE_SPEECH_API_KEY: Final[str] = os.getenv("GOOGLE_SPEECH_API_KEY", "")

# Language routing
CJK_LANGUAGE_CODES: Final[tuple[str, ...]] = (
    "cmn-CN",
    "zh-CN",
    "cmn-Hans-CN",
    "ja-JP",
    "ko-KR",
    "zh",
    "ja",
    "ko",
    "cmn",
)
SPACE_SEPARATED_LANGUAGE_CODES: Final[tuple[str, ...]] = (
    "en-GB",
    "es-ES",
    "fr-FR",
    "de-DE",
    "ru-RU",
    "it-IT",
    "ms-MY",
    "ta-IN",
    "hi-IN",
)
CJK_TIME_UNIT_CHARACTERS: Final[str] = "年月日时分秒"

# Alignment
DEFAULT_LOOKBEHIND: Final[int] = 2
DEFAULT_LOOKAHEAD: Final[int] = 5
CJK_SIMILARITY_THRESHOLD: Final[float] = 0.8
DEFAULT_SIMILARITY_THRESHOLD: Final[float] = 0.6

# Interpolation
DEFAULT_WORDS_PER_SECOND: Final[float] = 2.5
CHARS_PER_WORD: Final[float] = 5.0
MIN_WORD_DURATION: Final[float] = 0.2
MAX_WORD_DURATION: Final[float] = 1.0
PUNCTUATION_DURATION: Final[float] = 0.1
GAP_FILL_RATIO: Final[float] = 0.8
BACKWARD_OFFSET: Final[float] = 0.1
FALLBACK_WORD_DURATION: Final[float] = 0.6

# Services
DEFAULT_DOWNLOAD_TIMEOUT: Final[float] = 10.0
DEFAULT_RECOGNITION_TIMEOUT: Final[float] = 60.0
DEFAULT_DOWNLOAD_RETRIES: Final[int] = 2
GOOGLE_SPEECH_ENDPOINT: Final[str] = "https://speech.googleapis.com/v1"
DEFAULT_RECOGNIZER_MODEL: Final[str] = "default"
DEFAULT_LOCALE: Final[str] = "en-US"
LOCALE_OVERRIDES: Final[dict[str, str]] = {"cmn-CN": "cmn-Hans-CN"}

DEFAULT_MAX_CONCURRENCY: Final[int] = 10
DEFAULT_LOG_LEVEL: Final[str] = "INFO"
METRICS_NAMESPACE: Final[str] = "SubtitleTiming/Pipeline"
