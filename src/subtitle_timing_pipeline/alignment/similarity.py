"""Normalized edit-distance similarity between reference and recognized words."""

from jellyfish import levenshtein_distance


def clean_for_comparison(text: str) -> str:
    """Lower-case and keep only alphanumeric characters in any script."""
    return "".join(char for char in text.lower() if char.isalnum())


def similarity(word_a: str, word_b: str) -> float:
    """Calculate similarity between two words using edit distance.

    Both inputs are cleaned again here so the score does not depend on how
    callers normalized them.

    Args:
        word_a: First word, typically a token's clean form.
        word_b: Second word, typically a recognizer word.

    Returns:
        Score in [0, 1]; 1 for identical cleaned strings, 0 when either side
        has nothing left after cleaning.
    """
    clean_a = clean_for_comparison(word_a or "")
    clean_b = clean_for_comparison(word_b or "")

    if not clean_a or not clean_b:
        return 0.0
    if clean_a == clean_b:
        return 1.0

    max_length = max(len(clean_a), len(clean_b))
    distance = levenshtein_distance(clean_a, clean_b)
    return max(0.0, (max_length - distance) / max_length)
