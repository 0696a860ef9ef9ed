"""Prompt and context builders for the language model services."""

import json
from typing import Mapping, Optional, Sequence

from ..progress.catalog import Mission, get_mission, missions
from ..progress.models import ChatMessage, Progress, Status


def _goal_listing() -> str:
    sections = []
    for mission in missions:
        goals = "\n".join(f'- "{goal}"' for goal in mission.suggested_goals)
        sections.append(f"Week {mission.week} - {mission.title} goals:\n{goals}")
    return "\n\n".join(sections)


EXTRACTION_PROMPT = f"""You are an NLP extraction system. Analyze the user's message and extract structured progress data.

The user is tracking progress on a 10-week AI Missions challenge with these goals:

{_goal_listing()}

RULES:
1. When the user reports COMPLETING a task, match it to the EXACT goal text above.
   - "finished the NLP part" -> completedTasks: ["Implement natural language processing for updates"]
   - "completed the dashboard" -> completedTasks: ["Create progress visualization dashboard"]
2. When the user wants to ADD a goal, put the new goal text in newGoals.
   - "add a goal for vision models" -> newGoals: ["Investigate vision models"]
3. When the user is WORKING ON something, add it to inProgressTasks, using the exact
   goal text when it matches an existing goal.

Respond ONLY with valid JSON:
{{
  "missionId": number or null,
  "missionConfidence": "high" | "medium" | "low",
  "completedTasks": ["exact goal text"],
  "inProgressTasks": ["exact goal text"],
  "newGoals": ["new goal text"],
  "blockers": ["blocker description"],
  "sentiment": "positive" | "neutral" | "negative" | "frustrated",
  "suggestedActions": [],
  "rawSummary": "Brief summary"
}}"""


COACH_PERSONALITY = """You are a supportive AI accountability coach helping the user track progress on a 10-week AI Missions challenge.

Your coaching style:
- Celebrate wins genuinely and keep feedback constructive
- Ask a clarifying question when progress is unclear
- Offer practical advice when the user mentions blockers
- Keep responses to 2-4 friendly sentences
- Share resources and tips for the current mission when relevant

When users log progress, acknowledge it, ask at most one follow-up question,
and suggest a reasonable next step."""


def build_coach_prompt(current: Optional[Mission]) -> str:
    """
    Build the coaching system prompt.

    Args:
        current: Mission the user is most likely working on

    Returns:
        System prompt with the mission overview and, if known, the current
        mission's goals, resources and tips
    """
    prompt = COACH_PERSONALITY + "\n\nThe 10-week missions are:\n"
    prompt += "\n".join(f"Week {m.week}: {m.title} - {m.description}" for m in missions)
    prompt += "\n\n"

    if current is None:
        return prompt

    prompt += "=== CURRENT MISSION CONTEXT ===\n"
    prompt += f"The user is currently working on Week {current.week}: {current.title}\n"
    prompt += f"Description: {current.description}\n\n"
    prompt += "Goals for this mission:\n"
    prompt += "".join(f"{i}. {goal}\n" for i, goal in enumerate(current.suggested_goals, start=1))
    prompt += "\n"

    if current.resources:
        prompt += "Helpful resources you can recommend:\n"
        for resource in current.resources:
            if resource.type == "link":
                prompt += f"- {resource.title}: {resource.url}\n"
            else:
                prompt += f"- Tip: {resource.content}\n"
        prompt += "\n"

    if current.challenge_tips:
        prompt += "Challenge tips to share when relevant:\n"
        prompt += "".join(f"- {tip}\n" for tip in current.challenge_tips)
        prompt += "\n"

    prompt += (
        "Weave in a relevant resource or tip only when it helps with what the "
        "user is working on or struggling with.\n"
    )
    return prompt


def progress_context(progress: Mapping[int, Progress]) -> str:
    """One line per mission: status, completed and pending goals, last three logs."""
    lines = []
    for mission in missions:
        record = progress.get(mission.id)
        if record is None:
            continue
        completed = ", ".join(g.text for g in record.goals if g.completed)
        pending = ", ".join(g.text for g in record.goals if not g.completed)
        recent = " | ".join(log.text for log in record.logs[-3:])
        lines.append(
            f"Week {mission.week} ({mission.title}): Status: {record.status.value}, "
            f"Completed: [{completed}], Pending: [{pending}], Recent logs: [{recent}]"
        )
    return "\n".join(lines)


def detect_current_mission(
    extracted_mission_id: Optional[int], progress: Mapping[int, Progress]
) -> Mission:
    """
    Pick the mission a coaching reply should focus on.

    Priority: the extracted mission, then the first in-progress mission,
    then the first incomplete one, then week 1.
    """
    if extracted_mission_id:
        mission = get_mission(extracted_mission_id)
        if mission is not None:
            return mission

    for mission in missions:
        record = progress.get(mission.id)
        if record is not None and record.status == Status.IN_PROGRESS:
            return mission

    for mission in missions:
        record = progress.get(mission.id)
        if record is None or record.status != Status.COMPLETED:
            return mission

    return missions[0]


def build_summary_prompt(progress: Mapping[int, Progress], recent: Sequence[ChatMessage]) -> str:
    """Prompt asking for a JSON weekly summary report."""
    data = {
        str(mission_id): record.model_dump(mode="json", by_alias=True)
        for mission_id, record in progress.items()
    }
    activity = "\n".join(f"{m.role}: {m.content}" for m in recent[-10:]) or "No recent activity"

    return f"""Based on this progress data, generate a weekly summary report.

Progress by week:
{json.dumps(data, indent=2)}

Recent chat activity:
{activity}

Respond ONLY with JSON containing:
- overview: 1-2 sentence summary of overall progress
- strengths: what they're doing well
- challenges: areas needing attention
- nextSteps: array of 3 specific action items

Be direct in your assessment."""
