"""Authoritative per-user progress state with local-first sync.

Each mutation is an atomic read-modify-write under a per-mission lock:

1. compute the new Progress from the current record
2. swap it in and write the local cache (synchronously)
3. schedule a background upsert to the remote store

Remote failures are logged and never roll back local state. Mirrors of the
same mission run in commit order, and the remote row is last-write-wins.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Coroutine, Optional, TypeVar

from pydantic import ValidationError

from ..nlp.matcher import match_goal
from . import state
from .cache import CHAT_NAMESPACE, PROGRESS_NAMESPACE, LocalCache
from .catalog import missions
from .models import (
    ChatMessage,
    Goal,
    GoalNotFoundError,
    LogEntry,
    MissionNotFoundError,
    MissionStats,
    Progress,
    Status,
)
from .remote import RemoteStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressStore:
    """Single source of truth for one user's progress and chat history."""

    def __init__(
        self,
        cache: LocalCache,
        remote: Optional[RemoteStore] = None,
        user_id: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize store with default progress for every mission.

        Args:
            cache: Durable local cache
            remote: Remote mirror, or None for local-only mode
            user_id: Owner; remote mirroring requires one
            clock: Source of mutation timestamps
        """
        self.cache = cache
        self.remote = remote
        self.user_id = user_id
        self.clock = clock

        self._progress: dict[int, Progress] = {
            mission.id: state.default_progress(mission) for mission in missions
        }
        self._chat: list[ChatMessage] = []
        self._locks = {mission.id: asyncio.Lock() for mission in missions}
        self._mirror_locks = {mission.id: asyncio.Lock() for mission in missions}
        self._pending: set[asyncio.Task] = set()

    @property
    def mirroring(self) -> bool:
        """Whether commits are mirrored to the remote store."""
        return self.remote is not None and self.user_id is not None

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, mission_id: int) -> Progress:
        """
        Latest committed progress for a mission.

        Raises:
            MissionNotFoundError: If the mission id is unknown
        """
        self._check_mission(mission_id)
        return self._progress[mission_id]

    def all(self) -> dict[int, Progress]:
        """Latest progress for every mission, keyed by mission id."""
        return dict(self._progress)

    def chat_history(self, limit: Optional[int] = None) -> list[ChatMessage]:
        """Chat messages oldest first, optionally only the last `limit`."""
        if limit is None:
            return list(self._chat)
        return self._chat[-limit:] if limit > 0 else []

    def stats(self) -> MissionStats:
        """Aggregate counts across all missions."""
        records = list(self._progress.values())
        total_goals = sum(len(p.goals) for p in records)
        completed_goals = sum(1 for p in records for goal in p.goals if goal.completed)

        return MissionStats(
            total_missions=len(records),
            completed_missions=sum(1 for p in records if p.status == Status.COMPLETED),
            in_progress_missions=sum(1 for p in records if p.status == Status.IN_PROGRESS),
            total_goals=total_goals,
            completed_goals=completed_goals,
            total_logs=sum(len(p.logs) for p in records),
            completion_percentage=round(completed_goals / total_goals * 100) if total_goals else 0,
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    async def add_log(self, mission_id: int, text: str) -> LogEntry:
        """Append a log entry to a mission."""
        return await self._mutate(
            mission_id, lambda progress, now: state.append_log(progress, text, now)
        )

    async def toggle_goal(self, mission_id: int, goal_id: str) -> Goal:
        """
        Flip a goal's completed flag.

        Returns:
            The goal after toggling

        Raises:
            GoalNotFoundError: If the goal id is not in the mission
        """

        def change(progress: Progress, now: datetime):
            updated = state.toggle_goal(progress, goal_id, now)
            return updated, updated.find_goal(goal_id)

        return await self._mutate(mission_id, change)

    async def mark_goal_complete(self, mission_id: int, goal_id: str) -> Optional[Goal]:
        """
        Complete a goal; a no-op if it is missing or already completed.

        Returns:
            The newly completed goal, or None if nothing changed
        """
        return await self._mutate(
            mission_id, lambda progress, now: state.mark_goal_complete(progress, goal_id, now)
        )

    async def add_goal(self, mission_id: int, text: str) -> tuple[Goal, bool]:
        """
        Add a goal unless an equivalent one exists.

        Returns:
            Tuple of (goal, created); an existing duplicate comes back with
            created=False

        Raises:
            ValueError: If text is blank
        """

        def change(progress: Progress, now: datetime):
            updated, goal, created = state.add_goal(progress, text, now)
            return updated, (goal, created)

        goal, created = await self._mutate(mission_id, change)
        if created:
            logger.info(f"Added goal {goal.id} to mission {mission_id}: {goal.text}")
        return goal, created

    async def remove_goal(self, mission_id: int, goal_id: str):
        """
        Remove a goal by id.

        Raises:
            GoalNotFoundError: If the goal id is not in the mission
        """

        def change(progress: Progress, now: datetime):
            if progress.find_goal(goal_id) is None:
                raise GoalNotFoundError(mission_id, goal_id)
            return state.remove_goal(progress, goal_id, now), None

        await self._mutate(mission_id, change)
        logger.info(f"Removed goal {goal_id} from mission {mission_id}")

    async def complete_goal_by_text(self, mission_id: int, task_text: str) -> Optional[Goal]:
        """
        Match a task description to a goal and complete it.

        Matching and completion happen in the same critical section, so the
        match is always made against the state being mutated. Calling twice
        with the same text completes at most one goal.

        Args:
            mission_id: Mission to search
            task_text: Free-text description of finished work

        Returns:
            The completed goal, or None if no goal safely matched
        """

        def change(progress: Progress, now: datetime):
            goal = match_goal(progress.goals, task_text)
            if goal is None:
                return progress, None
            return state.mark_goal_complete(progress, goal.id, now)

        completed = await self._mutate(mission_id, change)
        if completed is None:
            logger.info(f"No matching goal for '{task_text}' in mission {mission_id}")
        else:
            logger.info(f"✓ Completed goal {completed.id}: {completed.text}")
        return completed

    async def add_chat_message(self, role: str, content: str) -> ChatMessage:
        """Append a chat message locally and mirror it in the background."""
        message = ChatMessage(role=role, content=content, timestamp=self.clock())
        self._chat.append(message)
        self.cache.put(
            CHAT_NAMESPACE,
            self.user_id,
            [m.model_dump(mode="json", by_alias=True) for m in self._chat],
        )

        if self.mirroring:
            self._schedule(self._mirror_chat(message))
        return message

    async def _mutate(
        self, mission_id: int, change: Callable[[Progress, datetime], tuple[Progress, T]]
    ) -> T:
        self._check_mission(mission_id)
        async with self._locks[mission_id]:
            current = self._progress[mission_id]
            updated, result = change(current, self.clock())
            if updated is not current:
                self._commit(updated)
            return result

    def _commit(self, progress: Progress):
        self._progress[progress.mission_id] = progress
        self.cache.put(
            PROGRESS_NAMESPACE,
            self.user_id,
            {
                str(mission_id): record.model_dump(mode="json", by_alias=True)
                for mission_id, record in self._progress.items()
            },
        )

        if self.mirroring:
            self._schedule(self._mirror_progress(progress))

    def _check_mission(self, mission_id: int):
        if mission_id not in self._progress:
            raise MissionNotFoundError(mission_id)

    # =========================================================================
    # Remote mirror
    # =========================================================================

    def _schedule(self, coro: Coroutine):
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _mirror_progress(self, progress: Progress):
        async with self._mirror_locks[progress.mission_id]:
            try:
                await self.remote.upsert_progress(self.user_id, progress)
            except Exception as e:
                # Local state stays authoritative
                logger.error(f"Remote upsert failed for mission {progress.mission_id}: {e}")

    async def _mirror_chat(self, message: ChatMessage):
        try:
            await self.remote.insert_chat(self.user_id, message)
        except Exception as e:
            logger.error(f"Remote chat insert failed: {e}")

    async def flush(self):
        """Wait for all scheduled remote mirrors to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # =========================================================================
    # Loading
    # =========================================================================

    async def load(self):
        """
        Restore state from the local cache, then from the remote store.

        Remote rows, when available, replace the matching missions; a failed
        remote load leaves the cached state in place.
        """
        cached = self.cache.get(PROGRESS_NAMESPACE, self.user_id)
        if cached:
            for key, value in cached.items():
                try:
                    record = Progress.model_validate(value)
                except ValidationError as e:
                    logger.warning(f"Ignoring cached progress for mission {key}: {e}")
                    continue
                if record.mission_id in self._progress:
                    self._progress[record.mission_id] = record

        cached_chat = self.cache.get(CHAT_NAMESPACE, self.user_id)
        if cached_chat:
            self._chat = []
            for value in cached_chat:
                try:
                    self._chat.append(ChatMessage.model_validate(value))
                except ValidationError as e:
                    logger.warning(f"Ignoring cached chat message for user {self.user_id}: {e}")

        if not self.mirroring:
            return

        try:
            rows = await self.remote.fetch_progress(self.user_id)
            chat = await self.remote.fetch_chat(self.user_id)
        except Exception as e:
            logger.warning(f"Remote load failed for user {self.user_id}, using cache: {e}")
            return

        for record in rows:
            if record.mission_id in self._progress:
                self._progress[record.mission_id] = record
        if chat:
            self._chat = chat
        logger.info(f"Loaded {len(rows)} progress rows for user {self.user_id}")


class SessionRegistry:
    """
    Lazily created, loaded ProgressStore per user.

    At most `max_sessions` stores are kept, least recently used first out.
    An evicted store's pending mirrors are flushed before that user's store
    is loaded again, so the reload never reads a stale remote row.
    """

    def __init__(
        self,
        cache: LocalCache,
        remote: Optional[RemoteStore] = None,
        max_sessions: int = 1000,
    ):
        self.cache = cache
        self.remote = remote
        self.max_sessions = max_sessions
        # Each user's load runs in its own task, so a slow remote for one
        # user never delays another
        self._sessions: OrderedDict[Optional[str], asyncio.Task] = OrderedDict()
        self._evicted: dict[Optional[str], asyncio.Task] = {}

    async def get(self, user_id: Optional[str] = None) -> ProgressStore:
        """
        Return the store for a user, loading it on first use.

        Concurrent first requests for the same user share one load. A failed
        load is forgotten so the next request retries it.
        """
        session = self._sessions.get(user_id)
        if session is None:
            session = asyncio.create_task(self._load(user_id))
            self._sessions[user_id] = session
            self._evict()
        else:
            self._sessions.move_to_end(user_id)

        try:
            return await asyncio.shield(session)
        except Exception:
            if self._sessions.get(user_id) is session:
                del self._sessions[user_id]
            raise

    async def _load(self, user_id: Optional[str]) -> ProgressStore:
        retiring = self._evicted.get(user_id)
        if retiring is not None:
            await asyncio.shield(retiring)

        store = ProgressStore(self.cache, self.remote, user_id)
        await store.load()
        return store

    def _evict(self):
        while len(self._sessions) > self.max_sessions:
            user_id, session = self._sessions.popitem(last=False)
            logger.info(f"Evicting session for user {user_id or 'anonymous'}")
            self._evicted[user_id] = asyncio.create_task(self._retire(user_id, session))

    async def _retire(self, user_id: Optional[str], session: asyncio.Task):
        try:
            store = await session
            await store.flush()
        except Exception as e:
            logger.warning(f"Evicted session for user {user_id} never loaded: {e}")
        finally:
            if self._evicted.get(user_id) is asyncio.current_task():
                del self._evicted[user_id]

    async def close(self):
        """Flush pending mirrors and close the remote client."""
        loaded = await asyncio.gather(*self._sessions.values(), return_exceptions=True)
        for store in loaded:
            if isinstance(store, ProgressStore):
                await store.flush()
        await asyncio.gather(*list(self._evicted.values()), return_exceptions=True)

        if self.remote is not None:
            await self.remote.close()
