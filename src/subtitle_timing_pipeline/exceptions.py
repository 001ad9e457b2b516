"""Custom exception classes for the subtitle timing pipeline."""


class TimingPipelineError(Exception):
    """Base exception for all pipeline errors."""


class ConfigurationError(TimingPipelineError):
    """Raised when configuration is invalid or missing."""


class InvalidTextError(TimingPipelineError, TypeError):
    """Raised when the reference text is not a string."""


class AudioDownloadError(TimingPipelineError):
    """Raised when audio cannot be fetched from the audio store."""


class RecognitionError(TimingPipelineError):
    """Raised when the speech recognizer call fails."""

    def __init__(self, msg: str | None = None, retryable: bool | None = None) -> None:
        super().__init__(msg if msg is not None else "")
        self.retryable = retryable


class AlignmentError(TimingPipelineError):
    """Raised when alignment or interpolation produces inconsistent output."""
