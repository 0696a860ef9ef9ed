"""Fuzzy resolution of a task description to one existing goal."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..progress.models import Goal
from .normalizer import prepare, words

logger = logging.getLogger(__name__)

TOPIC_PHRASES = [
    "natural language",
    "processing",
    "visualization",
    "dashboard",
    "feedback",
    "architecture",
    "design",
    "tracking",
    "progress",
]

WORD_OVERLAP_THRESHOLD = 0.4


@dataclass(frozen=True)
class MatchText:
    """The forms of a string each strategy compares."""

    raw: str  # lowercased, trimmed
    prepared: str  # abbreviations expanded, then normalized
    words: tuple[str, ...]

    @classmethod
    def of(cls, text: str) -> "MatchText":
        return cls(raw=text.lower().strip(), prepared=prepare(text), words=tuple(words(text)))


def _topics(text: MatchText) -> set[str]:
    return {
        topic for topic in TOPIC_PHRASES if topic in text.prepared or topic in text.raw
    }


class MatchStrategy:
    """One tier of the matching cascade."""

    name = "base"

    def select(self, task: MatchText, candidates: list[tuple[Goal, MatchText]]) -> Optional[Goal]:
        """Return the first candidate goal this tier accepts."""
        for goal, goal_text in candidates:
            if self.accepts(task, goal_text):
                return goal
        return None

    def accepts(self, task: MatchText, goal: MatchText) -> bool:
        raise NotImplementedError


class ExactMatch(MatchStrategy):
    name = "exact"

    def accepts(self, task: MatchText, goal: MatchText) -> bool:
        if goal.raw == task.raw:
            return True
        return bool(task.prepared) and goal.prepared == task.prepared


class ContainmentMatch(MatchStrategy):
    name = "contains"

    def accepts(self, task: MatchText, goal: MatchText) -> bool:
        if task.raw in goal.raw or goal.raw in task.raw:
            return True
        # An empty prepared form is a substring of everything
        if not task.prepared or not goal.prepared:
            return False
        return task.prepared in goal.prepared or goal.prepared in task.prepared


class TopicOverlapMatch(MatchStrategy):
    name = "topic"

    def accepts(self, task: MatchText, goal: MatchText) -> bool:
        return bool(_topics(task) & _topics(goal))


class WordOverlapMatch(MatchStrategy):
    """Best-scoring goal by shared words, above a fixed threshold."""

    name = "word_overlap"

    def __init__(self, threshold: float = WORD_OVERLAP_THRESHOLD):
        self.threshold = threshold

    def score(self, task: MatchText, goal: MatchText) -> float:
        """
        Fraction of words shared between task and goal.

        A task word counts when it is one of the goal's words or a substring
        or superstring of any of them. The count is divided by the longer
        word list.
        """
        longest = max(len(task.words), len(goal.words))
        if longest == 0:
            return 0.0

        matching = [
            word
            for word in task.words
            if word in goal.words
            or any(goal_word in word or word in goal_word for goal_word in goal.words)
        ]
        return len(matching) / longest

    def select(self, task: MatchText, candidates: list[tuple[Goal, MatchText]]) -> Optional[Goal]:
        best_goal = None
        best_score = 0.0
        for goal, goal_text in candidates:
            score = self.score(task, goal_text)
            logger.debug(f"Word overlap {score:.2f} for goal {goal.id}")
            # Strictly greater, so the earliest goal wins ties
            if score > self.threshold and score > best_score:
                best_goal = goal
                best_score = score
        return best_goal


DEFAULT_STRATEGIES: tuple[MatchStrategy, ...] = (
    ExactMatch(),
    ContainmentMatch(),
    TopicOverlapMatch(),
    WordOverlapMatch(),
)


def match_goal(
    goals: Sequence[Goal],
    task_text: str,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
) -> Optional[Goal]:
    """
    Resolve a free-text task description to one incomplete goal.

    Strategies are tried in order and the first tier producing a candidate
    wins. Completed goals are never candidates, and blank task text never
    matches anything.

    Args:
        goals: The mission's current goal list
        task_text: Task description, e.g. from an extraction result
        strategies: Cascade to apply

    Returns:
        The matched goal, or None if no strategy found a safe match
    """
    if not task_text or not task_text.strip():
        return None

    task = MatchText.of(task_text)
    candidates = [(goal, MatchText.of(goal.text)) for goal in goals if not goal.completed]
    if not candidates:
        return None

    for strategy in strategies:
        goal = strategy.select(task, candidates)
        if goal is not None:
            logger.debug(f"Matched '{task_text}' to goal {goal.id} via {strategy.name}")
            return goal

    logger.debug(f"No goal matched '{task_text}'")
    return None
