"""Heuristic progress extraction used when no language model is available."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .models import ExtractionResult

logger = logging.getLogger(__name__)

WEEK_PATTERN = re.compile(r"week\s*(\d+)", re.IGNORECASE)

# Scanned in ascending mission order, first hit wins
MISSION_KEYWORDS: dict[int, list[str]] = {
    1: ["resolution", "tracker", "goal tracking", "goals"],
    2: ["model mapping", "compare models", "ai models"],
    3: ["research", "deep research"],
    4: ["data analyst", "data analysis", "analyze data"],
    5: ["visual", "vision", "image"],
    6: ["pipeline", "information pipeline"],
    7: ["distribution", "automate distribution"],
    8: ["productivity", "automate productivity"],
    9: ["context", "context engineering", "prompt"],
    10: ["build app", "ai app", "application"],
}

POSITIVE_WORDS = ["great", "awesome", "excited", "happy", "good", "excellent", "amazing", "love"]
NEGATIVE_WORDS = ["stuck", "frustrated", "confused", "hard", "difficult", "struggling", "hate", "annoying"]

SUMMARY_LENGTH = 100


@dataclass(frozen=True)
class PhrasePattern:
    """A trigger expression whose following phrase is captured."""

    name: str
    regex: re.Pattern

    @classmethod
    def compile(cls, name: str, trigger: str) -> "PhrasePattern":
        # Capture runs up to the next period, comma or end of text
        return cls(name, re.compile(trigger + r"\s+(.+?)(?:\.|,|$)", re.IGNORECASE))

    def find(self, text: str) -> list[tuple[int, int, str]]:
        """Return (start, end, captured phrase) for every match in text."""
        return [(m.start(), m.end(), m.group(1)) for m in self.regex.finditer(text)]


COMPLETED_PATTERNS = [
    PhrasePattern.compile(
        "completion_verb",
        r"\b(?:finished|completed|done with|wrapped up|built|created|implemented)",
    ),
    PhrasePattern.compile("first_person_completion", r"\b(?:i|we)\s+(?:finished|completed|did|made)"),
]

IN_PROGRESS_PATTERNS = [
    PhrasePattern.compile("progress_verb", r"\b(?:working on|started|beginning|currently)"),
    PhrasePattern.compile("continuation", r"\b(?:still|halfway through|in the middle of)"),
]

BLOCKER_PATTERNS = [
    PhrasePattern.compile(
        "blocker_phrase",
        r"\b(?:stuck on|blocked by|struggling with|can't figure out|having trouble with)",
    ),
    PhrasePattern.compile("difficulty_noun", r"\b(?:issue|problem|challenge|difficulty)\s+(?:with|is)"),
]


def capture_phrases(text: str, patterns: list[PhrasePattern]) -> list[str]:
    """
    Collect the phrases captured by a group of patterns.

    Matches from all patterns are ordered by position; a match overlapping
    one already taken is dropped, so "I finished X" yields X once even
    though both completion patterns fire.

    Args:
        text: Original-cased message text
        patterns: Patterns of one category

    Returns:
        Trimmed, non-empty phrases in left-to-right order
    """
    matches = [match for pattern in patterns for match in pattern.find(text)]
    matches.sort(key=lambda match: (match[0], -match[1]))

    phrases = []
    taken_until = -1
    for start, end, phrase in matches:
        if start < taken_until:
            continue
        taken_until = end
        phrase = phrase.strip()
        if phrase:
            phrases.append(phrase)
    return phrases


def detect_mission(lower: str) -> Optional[int]:
    """
    Resolve the mission a message refers to.

    An explicit "week N" wins when 1 <= N <= 10; otherwise the keyword table
    is scanned in mission order.

    Args:
        lower: Lowercased message text

    Returns:
        Mission id, or None if nothing resolved
    """
    week_match = WEEK_PATTERN.search(lower)
    if week_match:
        week = int(week_match.group(1))
        if 1 <= week <= 10:
            return week

    for mission_id, keywords in MISSION_KEYWORDS.items():
        if any(keyword in lower for keyword in keywords):
            return mission_id

    return None


def detect_sentiment(lower: str) -> str:
    """Classify sentiment by counting positive and negative list words present."""
    positive = sum(1 for word in POSITIVE_WORDS if word in lower)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lower)

    if positive > negative:
        return "positive"
    if negative > positive:
        return "frustrated" if negative > 1 else "negative"
    return "neutral"


def summarize(text: str) -> str:
    """Truncate text for the rawSummary field."""
    if len(text) > SUMMARY_LENGTH:
        return text[:SUMMARY_LENGTH] + "..."
    return text


def fallback_extraction(text: str) -> ExtractionResult:
    """
    Extract structured progress data from free text with regex heuristics.

    Never raises: text that matches nothing produces a result with empty
    lists, neutral sentiment and low confidence. New goals and suggested
    actions are never produced on this path.

    Args:
        text: Raw user message

    Returns:
        Fully populated ExtractionResult
    """
    lower = text.lower()
    mission_id = detect_mission(lower)

    result = ExtractionResult(
        mission_id=mission_id,
        mission_confidence="medium" if mission_id else "low",
        completed_tasks=capture_phrases(text, COMPLETED_PATTERNS),
        in_progress_tasks=capture_phrases(text, IN_PROGRESS_PATTERNS),
        new_goals=[],
        blockers=capture_phrases(text, BLOCKER_PATTERNS),
        sentiment=detect_sentiment(lower),
        suggested_actions=[],
        raw_summary=summarize(text),
    )

    logger.debug(
        f"Fallback extraction: mission={result.mission_id}, "
        f"completed={result.completed_tasks}, in_progress={result.in_progress_tasks}, "
        f"blockers={result.blockers}, sentiment={result.sentiment}"
    )
    return result
