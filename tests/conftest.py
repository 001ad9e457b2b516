"""Pytest configuration and fixtures for the subtitle timing pipeline tests."""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from subtitle_timing_pipeline.config import TimingConfig
from subtitle_timing_pipeline.core import TimingPipeline
from subtitle_timing_pipeline.models import RecognizedWord


def word_offsets(*items: tuple[str, float, float]) -> list[dict[str, Any]]:
    """Build recognizer word entries the way the REST API returns them."""
    return [{"word": w, "startTime": f"{s}s", "endTime": f"{e}s"} for w, s, e in items]


@pytest.fixture
def recognized_words() -> list[RecognizedWord]:
    """Recognizer words for 'the cat sat on the mat'."""
    return [
        RecognizedWord("the", 0.0, 0.2),
        RecognizedWord("cat", 0.3, 0.6),
        RecognizedWord("sat", 0.7, 1.0),
        RecognizedWord("on", 1.1, 1.2),
        RecognizedWord("the", 1.3, 1.4),
        RecognizedWord("mat", 1.5, 1.9),
    ]


@pytest.fixture
def audio_store() -> AsyncMock:
    """Audio store returning a small payload for every reference."""
    store = AsyncMock()
    store.fetch.return_value = b"RIFF-audio"
    return store


@pytest.fixture
def recognizer() -> AsyncMock:
    """Recognizer returning offsets for 'the cat sat'."""
    mock = AsyncMock()
    mock.recognize.return_value = word_offsets(("the", 0.0, 0.2), ("cat", 0.3, 0.6), ("sat", 0.7, 1.0))
    return mock


@pytest.fixture
def make_pipeline(
    audio_store: AsyncMock, recognizer: AsyncMock
) -> Callable[..., TimingPipeline]:
    """Factory for pipelines wired to the mocked collaborators."""

    def _make(config: TimingConfig | None = None, **kwargs: Any) -> TimingPipeline:
        return TimingPipeline(
            audio_store=kwargs.pop("audio_store", audio_store),
            recognizer=kwargs.pop("recognizer", recognizer),
            config=config,
            **kwargs,
        )

    return _make
