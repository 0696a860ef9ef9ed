"""Extraction, coaching and summary contracts."""

from typing import Literal, Optional

from pydantic import Field, field_validator

from ..progress.models import CamelModel, Goal

Confidence = Literal["high", "medium", "low"]
Sentiment = Literal["positive", "neutral", "negative", "frustrated"]


class ExtractionResult(CamelModel):
    """Structured progress claims pulled out of one user message."""

    mission_id: Optional[int] = None
    mission_confidence: Confidence = "low"
    completed_tasks: list[str] = []
    in_progress_tasks: list[str] = []
    new_goals: list[str] = []
    blockers: list[str] = []
    sentiment: Sentiment = "neutral"
    suggested_actions: list[str] = []
    raw_summary: str = ""

    @field_validator("mission_id", mode="before")
    @classmethod
    def _mission_in_range(cls, value):
        # Out-of-range weeks are treated as unresolved rather than rejected
        if value is None:
            return None
        try:
            mission_id = int(value)
        except (TypeError, ValueError):
            return None
        return mission_id if 1 <= mission_id <= 10 else None

    @field_validator(
        "completed_tasks",
        "in_progress_tasks",
        "new_goals",
        "blockers",
        "suggested_actions",
        mode="before",
    )
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class ExtractionRequest(CamelModel):
    """Request body for /api/extract."""

    message: str
    extraction_prompt: Optional[str] = None


class ExtractionResponse(CamelModel):
    """Extraction result plus how it was produced."""

    extracted: ExtractionResult
    method: Literal["ai", "fallback"]
    error: Optional[str] = None


class HistoryTurn(CamelModel):
    """A prior chat turn sent along with a coaching request."""

    role: Literal["user", "assistant"]
    content: str


class CoachAction(CamelModel):
    """Side effect requested alongside a coaching reply."""

    type: Literal["log", "check_completion", "complete_goal"]
    mission_id: Optional[int] = None
    text: Optional[str] = None
    goal_id: Optional[str] = None


class CoachRequest(CamelModel):
    """Request body for /api/chat."""

    message: str
    history: list[HistoryTurn] = []
    progress_context: str = ""
    system_prompt: str = ""


class CoachReply(CamelModel):
    """Coaching response text plus derived actions."""

    response: str
    actions: list[CoachAction] = []
    error: Optional[str] = None


class WeeklySummary(CamelModel):
    """Progress summary report."""

    overview: str
    strengths: str
    challenges: str
    next_steps: list[str] = Field(default_factory=list)


class MessageRequest(CamelModel):
    """Request body for /api/messages."""

    message: str


class ChatTurnResult(CamelModel):
    """Everything one user message changed."""

    response: str
    extraction: ExtractionResult
    method: Literal["ai", "fallback"]
    mission_id: Optional[int] = None
    completed_goals: list[Goal] = []
    added_goals: list[Goal] = []
    unmatched_tasks: list[str] = []
    actions: list[CoachAction] = []
