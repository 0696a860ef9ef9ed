"""Extraction, coaching and summary services over a language model.

Every service degrades instead of failing: a missing model, a raised error
or an unusable reply falls back to a deterministic local answer.
"""

import json
import logging
import re
from typing import Any, Mapping, Optional, Sequence

from pydantic import ValidationError

from ..progress.models import ChatMessage, MissionStats, Progress
from .extractor import WEEK_PATTERN, fallback_extraction, summarize
from .llm import LanguageModel, ModelUnavailableError
from .models import CoachAction, CoachReply, ExtractionResponse, ExtractionResult, HistoryTurn, WeeklySummary
from .prompts import EXTRACTION_PROMPT, build_summary_prompt

logger = logging.getLogger(__name__)

NOT_CONFIGURED_REPLY = (
    "I'm not connected yet! Add your CLAUDE_API_KEY to enable AI coaching. "
    "Until then, keep logging your progress here and checking off goals."
)
ERROR_REPLY = (
    "Something went wrong on my end. Your progress was still recorded, "
    "so keep going and try me again in a moment."
)

COMPLETION_PHRASES = ["finished", "completed", "done with", "wrapped up"]


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """
    Find the first balanced JSON object embedded in text.

    Scans for "{", tracks brace depth while skipping over string literals,
    and parses the first balanced span that decodes to an object. Handles
    replies like 'Sure! {"missionId": 3} Hope that helps.'

    Args:
        text: Model reply

    Returns:
        Decoded dict, or None if no object could be parsed
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue

            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    try:
                        value = json.loads(text[start : index + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(value, dict):
                        return value
                    break
        start = text.find("{", start + 1)
    return None


class ExtractionService:
    """Turns a user message into an ExtractionResult."""

    def __init__(self, model: LanguageModel):
        self.model = model

    async def extract(self, message: str, extraction_prompt: Optional[str] = None) -> ExtractionResponse:
        """
        Extract progress data, via the model when possible.

        Args:
            message: Raw user message
            extraction_prompt: Prompt override; defaults to EXTRACTION_PROMPT

        Returns:
            ExtractionResponse with method "ai" or "fallback"
        """
        if not self.model.available:
            return ExtractionResponse(extracted=fallback_extraction(message), method="fallback")

        prompt = extraction_prompt or EXTRACTION_PROMPT
        try:
            reply = await self.model.complete(
                [{"role": "user", "content": f'{prompt}\n\nUser message to analyze:\n"{message}"'}]
            )
        except Exception as e:
            logger.error(f"Extraction call failed: {e}", exc_info=True)
            return ExtractionResponse(
                extracted=fallback_extraction(message), method="fallback", error=str(e)
            )

        payload = extract_json_object(reply)
        if payload is None:
            logger.warning("Extraction reply contained no JSON object, using fallback")
            return ExtractionResponse(extracted=fallback_extraction(message), method="fallback")

        try:
            extracted = ExtractionResult.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Extraction reply failed validation, using fallback: {e}")
            return ExtractionResponse(extracted=fallback_extraction(message), method="fallback")

        if not extracted.raw_summary:
            extracted.raw_summary = summarize(message)
        return ExtractionResponse(extracted=extracted, method="ai")


def parse_actions(user_message: str) -> list[CoachAction]:
    """
    Derive side-effect actions from the user's message.

    A "week N" mention (1-10) asks for the message to be logged to that
    mission; a completion phrase asks for a completion check.
    """
    actions = []
    lower = user_message.lower()

    week_match = WEEK_PATTERN.search(lower)
    if week_match:
        week = int(week_match.group(1))
        if 1 <= week <= 10:
            actions.append(CoachAction(type="log", mission_id=week, text=user_message))

    if any(phrase in lower for phrase in COMPLETION_PHRASES):
        actions.append(CoachAction(type="check_completion"))

    return actions


class CoachingService:
    """Accountability-coach replies."""

    def __init__(self, model: LanguageModel):
        self.model = model

    async def reply(
        self,
        message: str,
        history: Sequence[HistoryTurn] = (),
        progress_context: str = "",
        system_prompt: str = "",
    ) -> CoachReply:
        """
        Get a coaching reply for a user message.

        Args:
            message: The user's latest message
            history: Prior turns, oldest first
            progress_context: Text snapshot of all missions' progress
            system_prompt: Coach persona and mission context

        Returns:
            CoachReply; a fixed reply with error set when the model is
            unavailable or fails
        """
        actions = parse_actions(message)
        messages = [{"role": turn.role, "content": turn.content} for turn in history]
        messages.append(
            {
                "role": "user",
                "content": f"Current progress state:\n{progress_context}\n\nUser message: {message}",
            }
        )

        try:
            response = await self.model.complete(messages, system=system_prompt or None)
        except ModelUnavailableError as e:
            return CoachReply(response=NOT_CONFIGURED_REPLY, actions=actions, error=str(e))
        except Exception as e:
            logger.error(f"Coaching call failed: {e}", exc_info=True)
            return CoachReply(response=ERROR_REPLY, actions=actions, error=str(e))

        return CoachReply(response=response, actions=actions)


def fallback_summary(stats: MissionStats) -> WeeklySummary:
    """Deterministic summary built from aggregate stats."""
    overview = (
        f"You've completed {stats.completed_goals} of {stats.total_goals} goals "
        f"({stats.completion_percentage}%) and finished {stats.completed_missions} "
        f"of {stats.total_missions} missions."
    )

    if stats.completed_goals:
        strengths = f"{stats.completed_goals} goals done and {stats.total_logs} progress logs recorded."
    else:
        strengths = "Keep tracking your progress consistently."

    if stats.in_progress_missions > 1:
        challenges = f"{stats.in_progress_missions} missions are open at once; finish one before starting another."
    else:
        challenges = "Stay focused on your weekly goals."

    return WeeklySummary(
        overview=overview,
        strengths=strengths,
        challenges=challenges,
        next_steps=["Review your current mission", "Set specific daily targets", "Log progress daily"],
    )


class SummaryService:
    """Weekly progress summaries."""

    def __init__(self, model: LanguageModel):
        self.model = model

    async def summarize(
        self,
        progress: Mapping[int, Progress],
        recent: Sequence[ChatMessage],
        stats: MissionStats,
    ) -> WeeklySummary:
        """Summarize progress, falling back to stats when the model can't help."""
        if not self.model.available:
            return fallback_summary(stats)

        try:
            reply = await self.model.complete(
                [{"role": "user", "content": build_summary_prompt(progress, recent)}]
            )
        except Exception as e:
            logger.error(f"Summary call failed: {e}", exc_info=True)
            return fallback_summary(stats)

        payload = extract_json_object(reply)
        if payload is not None:
            try:
                return WeeklySummary.model_validate(payload)
            except ValidationError as e:
                logger.warning(f"Summary reply failed validation: {e}")

        summary = fallback_summary(stats)
        summary.overview = reply[:200] or summary.overview
        return summary


async def demo_extraction():
    """Demo: Extract progress from a few sample messages."""
    import os
    from dotenv import load_dotenv

    from ..config import Settings
    from .llm import build_model

    load_dotenv()

    service = ExtractionService(build_model(Settings()))
    samples = [
        "I finished the NLP part for week 1",
        "Still working on the comparison framework, stuck on pricing data and frustrated",
        "Great progress today, wrapped up the dashboard!",
    ]

    if not os.getenv("CLAUDE_API_KEY"):
        print("CLAUDE_API_KEY not set, showing fallback extraction only\n")

    for sample in samples:
        result = await service.extract(sample)
        print(f"> {sample}")
        print(f"  method: {result.method}")
        print(f"  {result.extracted.model_dump_json(by_alias=True, indent=2)}")
        print()


if __name__ == "__main__":
    import asyncio

    logging.basicConfig(level=logging.INFO)
    asyncio.run(demo_extraction())
