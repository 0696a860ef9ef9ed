"""Progress, goal and chat models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class MissionNotFoundError(LookupError):
    """Raised when a mission id is not in the catalog."""

    def __init__(self, mission_id: int):
        super().__init__(f"Unknown mission: {mission_id}")
        self.mission_id = mission_id


class GoalNotFoundError(LookupError):
    """Raised when a goal id does not exist in a mission's goal list."""

    def __init__(self, mission_id: int, goal_id: str):
        super().__init__(f"Unknown goal {goal_id} in mission {mission_id}")
        self.mission_id = mission_id
        self.goal_id = goal_id


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Status(str, Enum):
    """Mission status, derived from goal completion."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Goal(CamelModel):
    """One trackable sub-task within a mission."""

    id: str
    text: str
    completed: bool = False


class LogEntry(CamelModel):
    """Append-only progress note."""

    id: int  # epoch milliseconds, strictly increasing per mission
    text: str
    timestamp: datetime


class Progress(CamelModel):
    """Per-mission progress record for one user."""

    mission_id: int
    status: Status = Status.NOT_STARTED
    goals: list[Goal] = []
    logs: list[LogEntry] = []
    completed_at: Optional[datetime] = None

    def find_goal(self, goal_id: str) -> Optional[Goal]:
        """Return the goal with the given id, if present."""
        for goal in self.goals:
            if goal.id == goal_id:
                return goal
        return None


class ChatMessage(CamelModel):
    """One turn of the coaching conversation."""

    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime


class MissionStats(CamelModel):
    """Aggregate numbers across all missions."""

    total_missions: int = 0
    completed_missions: int = 0
    in_progress_missions: int = 0
    total_goals: int = 0
    completed_goals: int = 0
    total_logs: int = 0
    completion_percentage: int = 0
