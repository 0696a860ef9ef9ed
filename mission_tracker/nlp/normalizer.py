"""Text normalization shared by goal matching and duplicate detection."""

import re

ABBREVIATIONS = {
    "nlp": "natural language processing",
    "ml": "machine learning",
    "ai": "artificial intelligence",
    "ui": "user interface",
    "ux": "user experience",
    "api": "application programming interface",
}

_ABBREVIATION_PATTERN = re.compile(
    r"\b(" + "|".join(ABBREVIATIONS) + r")\b", re.IGNORECASE
)
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace and trim."""
    text = _PUNCTUATION.sub("", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def expand_abbreviations(text: str) -> str:
    """
    Replace known abbreviations with their long forms.

    Matching is whole-word and case-insensitive, so "NLP" expands but
    "unlpack" does not.

    Args:
        text: Any string

    Returns:
        Text with abbreviations expanded (long forms are lowercase)
    """
    return _ABBREVIATION_PATTERN.sub(
        lambda match: ABBREVIATIONS[match.group(1).lower()], text
    )


def prepare(text: str) -> str:
    """Expand abbreviations, then normalize."""
    return normalize(expand_abbreviations(text))


def words(text: str) -> list[str]:
    """Split prepared text into words longer than two characters."""
    return [word for word in prepare(text).split(" ") if len(word) > 2]
