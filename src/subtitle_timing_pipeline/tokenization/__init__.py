"""
Reference text tokenization.

- tokenizer.py: Language routing and character/space tokenization strategies
- scripts.py: Unicode character classification helpers
"""

from subtitle_timing_pipeline.tokenization.tokenizer import (
    TokenizationMode,
    resolve_tokenization_mode,
    tokenize,
)

__all__ = ["TokenizationMode", "resolve_tokenization_mode", "tokenize"]
