"""External collaborators: audio retrieval and speech recognition."""

from subtitle_timing_pipeline.services.audio_store import AudioStore, HttpAudioStore
from subtitle_timing_pipeline.services.recognizer import (
    GoogleSpeechRecognizer,
    SpeechRecognizer,
    extract_word_offsets,
    normalize_recognized_words,
    parse_offset,
    split_cjk_words,
    to_recognizer_locale,
)

__all__ = [
    "AudioStore",
    "GoogleSpeechRecognizer",
    "HttpAudioStore",
    "SpeechRecognizer",
    "extract_word_offsets",
    "normalize_recognized_words",
    "parse_offset",
    "split_cjk_words",
    "to_recognizer_locale",
]
