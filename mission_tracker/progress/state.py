"""Progress state machine.

Every function here is pure: it takes a Progress record and returns a new
one, leaving the input untouched. Mission status is never set directly; it
is recomputed from the goal list after each goal mutation:

    completed    goals non-empty and all completed
    in_progress  some but not all goals completed
    not_started  otherwise

completed_at is stamped on entry to completed and cleared on exit.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..nlp.normalizer import prepare
from .catalog import Mission
from .models import Goal, GoalNotFoundError, LogEntry, Progress, Status

logger = logging.getLogger(__name__)


def default_progress(mission: Mission) -> Progress:
    """Seed a mission's progress with one goal per suggested goal."""
    return Progress(
        mission_id=mission.id,
        status=Status.NOT_STARTED,
        goals=[
            Goal(id=f"{mission.id}-{index}", text=text, completed=False)
            for index, text in enumerate(mission.suggested_goals)
        ],
        logs=[],
        completed_at=None,
    )


def derive_status(goals: Sequence[Goal]) -> Status:
    """Compute mission status from goal completion flags."""
    completed = sum(1 for goal in goals if goal.completed)
    if goals and completed == len(goals):
        return Status.COMPLETED
    if completed > 0:
        return Status.IN_PROGRESS
    return Status.NOT_STARTED


def recompute(progress: Progress, goals: list[Goal], now: datetime) -> Progress:
    """
    Return progress with new goals and the status they imply.

    Args:
        progress: Current record
        goals: Replacement goal list
        now: Mutation time, used if the mission becomes completed

    Returns:
        New Progress record
    """
    status = derive_status(goals)

    if status == Status.COMPLETED:
        was_completed = progress.status == Status.COMPLETED and progress.completed_at
        completed_at = progress.completed_at if was_completed else now
    else:
        completed_at = None

    if status != progress.status:
        logger.info(f"Mission {progress.mission_id}: {progress.status.value} -> {status.value}")

    return progress.model_copy(
        update={"goals": goals, "status": status, "completed_at": completed_at}
    )


def _epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def toggle_goal(progress: Progress, goal_id: str, now: datetime) -> Progress:
    """
    Flip one goal's completed flag.

    Raises:
        GoalNotFoundError: If the goal id is not in the mission
    """
    if progress.find_goal(goal_id) is None:
        raise GoalNotFoundError(progress.mission_id, goal_id)

    goals = [
        goal.model_copy(update={"completed": not goal.completed}) if goal.id == goal_id else goal
        for goal in progress.goals
    ]
    return recompute(progress, goals, now)


def mark_goal_complete(
    progress: Progress, goal_id: str, now: datetime
) -> tuple[Progress, Optional[Goal]]:
    """
    Set one goal to completed, never back to incomplete.

    Missing and already-completed goals are a no-op: the input record is
    returned unchanged together with None.

    Returns:
        Tuple of (progress, completed goal or None)
    """
    goal = progress.find_goal(goal_id)
    if goal is None or goal.completed:
        logger.info(f"Goal {goal_id} already completed or not found, skipping")
        return progress, None

    completed = goal.model_copy(update={"completed": True})
    goals = [completed if g.id == goal_id else g for g in progress.goals]
    return recompute(progress, goals, now), completed


def find_duplicate(goals: Sequence[Goal], text: str) -> Optional[Goal]:
    """Return the first goal whose prepared text contains, or is contained in, text."""
    candidate = prepare(text)
    for goal in goals:
        existing = prepare(goal.text)
        if candidate in existing or existing in candidate:
            return goal
    return None


def _new_goal_id(progress: Progress, now: datetime) -> str:
    stamp = _epoch_ms(now)
    taken = {goal.id for goal in progress.goals}
    while f"{progress.mission_id}-{stamp}" in taken:
        stamp += 1
    return f"{progress.mission_id}-{stamp}"


def add_goal(progress: Progress, text: str, now: datetime) -> tuple[Progress, Goal, bool]:
    """
    Append a goal unless an equivalent one already exists.

    Args:
        progress: Current record
        text: New goal text
        now: Mutation time, also the source of the new goal's id

    Returns:
        Tuple of (progress, goal, created). When a duplicate is found the
        input record and the existing goal are returned with created=False.

    Raises:
        ValueError: If text is blank after normalization
    """
    text = text.strip()
    if not prepare(text):
        raise ValueError("Goal text must not be empty")

    existing = find_duplicate(progress.goals, text)
    if existing is not None:
        logger.info(f"Goal '{text}' duplicates {existing.id}, not adding")
        return progress, existing, False

    goal = Goal(id=_new_goal_id(progress, now), text=text, completed=False)
    return recompute(progress, [*progress.goals, goal], now), goal, True


def remove_goal(progress: Progress, goal_id: str, now: datetime) -> Progress:
    """Remove a goal by id; status may drop as a result."""
    goals = [goal for goal in progress.goals if goal.id != goal_id]
    return recompute(progress, goals, now)


def append_log(progress: Progress, text: str, now: datetime) -> tuple[Progress, LogEntry]:
    """Append a log entry with an id greater than every existing one."""
    entry_id = _epoch_ms(now)
    if progress.logs:
        entry_id = max(entry_id, progress.logs[-1].id + 1)

    entry = LogEntry(id=entry_id, text=text, timestamp=now)
    return progress.model_copy(update={"logs": [*progress.logs, entry]}), entry
