"""Chat-driven progress pipeline.

One user message flows through:

1. extraction (language model or fallback heuristics)
2. a log entry on the extracted mission
3. idempotent completion of matched goals; unmatched completions are skipped
4. duplicate-checked goal additions for in-progress tasks and new goals
5. a coaching reply with mission context
6. the actions derived for that reply

Messages for the same session are processed one at a time, so every step
sees the cumulative effect of everything before it.
"""

import asyncio
import logging
import weakref
from typing import Optional

from .nlp.models import ChatTurnResult, CoachAction, HistoryTurn
from .nlp.prompts import build_coach_prompt, detect_current_mission, progress_context
from .nlp.service import CoachingService, ExtractionService
from .progress.models import Goal
from .progress.store import ProgressStore

logger = logging.getLogger(__name__)


class ChatPipeline:
    """Applies user messages to a session's progress."""

    def __init__(
        self,
        extraction: ExtractionService,
        coaching: CoachingService,
        history_window: int = 10,
    ):
        """
        Initialize pipeline.

        Args:
            extraction: Service producing ExtractionResults
            coaching: Service producing coach replies
            history_window: Number of prior chat turns sent to the coach
        """
        self.extraction = extraction
        self.coaching = coaching
        self.history_window = history_window
        # Dropped along with the store when the session registry evicts it
        self._session_locks: weakref.WeakKeyDictionary[ProgressStore, asyncio.Lock] = (
            weakref.WeakKeyDictionary()
        )

    def _lock_for(self, store: ProgressStore) -> asyncio.Lock:
        return self._session_locks.setdefault(store, asyncio.Lock())

    async def process(self, store: ProgressStore, message: str) -> ChatTurnResult:
        """
        Process one user message end to end.

        Args:
            store: The user's progress store
            message: Raw message text

        Returns:
            ChatTurnResult describing the reply and every change made
        """
        async with self._lock_for(store):
            return await self._process(store, message.strip())

    async def _process(self, store: ProgressStore, message: str) -> ChatTurnResult:
        history = [
            HistoryTurn(role=m.role, content=m.content)
            for m in store.chat_history(self.history_window)
        ]
        await store.add_chat_message("user", message)

        extraction = await self.extraction.extract(message)
        extracted = extraction.extracted
        mission_id = extracted.mission_id
        logger.info(
            f"Extracted via {extraction.method}: mission={mission_id}, "
            f"completed={len(extracted.completed_tasks)}, new={len(extracted.new_goals)}"
        )

        completed_goals: list[Goal] = []
        added_goals: list[Goal] = []
        unmatched: list[str] = []

        if mission_id:
            await store.add_log(mission_id, message)

            for task in extracted.completed_tasks:
                goal = await store.complete_goal_by_text(mission_id, task)
                if goal is None:
                    # Never invent a goal for work reported as already done
                    unmatched.append(task)
                else:
                    completed_goals.append(goal)

            for text in [*extracted.in_progress_tasks, *extracted.new_goals]:
                goal = await self._add_goal(store, mission_id, text)
                if goal is not None:
                    added_goals.append(goal)

        current = detect_current_mission(mission_id, store.all())
        reply = await self.coaching.reply(
            message,
            history=history,
            progress_context=progress_context(store.all()),
            system_prompt=build_coach_prompt(current),
        )
        await store.add_chat_message("assistant", reply.response)

        for action in reply.actions:
            goal = await self._apply_action(store, action, logged_mission=mission_id)
            if goal is not None:
                completed_goals.append(goal)

        return ChatTurnResult(
            response=reply.response,
            extraction=extracted,
            method=extraction.method,
            mission_id=mission_id,
            completed_goals=completed_goals,
            added_goals=added_goals,
            unmatched_tasks=unmatched,
            actions=reply.actions,
        )

    async def _add_goal(self, store: ProgressStore, mission_id: int, text: str) -> Optional[Goal]:
        try:
            goal, created = await store.add_goal(mission_id, text)
        except ValueError:
            logger.debug(f"Skipping blank goal text for mission {mission_id}")
            return None
        return goal if created else None

    async def _apply_action(
        self, store: ProgressStore, action: CoachAction, logged_mission: Optional[int]
    ) -> Optional[Goal]:
        """Apply one coach action; returns a goal if the action completed one."""
        if action.type == "log":
            if not action.mission_id or not action.text:
                return None
            if action.mission_id == logged_mission:
                # Already logged from the extraction step
                return None
            try:
                await store.add_log(action.mission_id, action.text)
            except LookupError as e:
                logger.warning(f"Ignoring log action: {e}")
            return None

        if action.type == "complete_goal":
            if not action.mission_id:
                return None
            try:
                if action.goal_id:
                    return await store.mark_goal_complete(action.mission_id, action.goal_id)
                if action.text:
                    return await store.complete_goal_by_text(action.mission_id, action.text)
            except LookupError as e:
                logger.warning(f"Ignoring complete_goal action: {e}")
            return None

        # check_completion: completions were already applied from the extraction
        logger.debug("Completion check requested, already handled by extraction")
        return None
