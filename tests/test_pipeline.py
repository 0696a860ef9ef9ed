"""End-to-end tests for the chat pipeline."""

import asyncio
import gc
import json

import pytest

from mission_tracker.nlp.llm import UnconfiguredModel
from mission_tracker.nlp.service import NOT_CONFIGURED_REPLY, CoachingService, ExtractionService
from mission_tracker.pipeline import ChatPipeline
from mission_tracker.progress.models import Status
from mission_tracker.progress.store import ProgressStore


@pytest.fixture
def offline_pipeline() -> ChatPipeline:
    model = UnconfiguredModel()
    return ChatPipeline(ExtractionService(model), CoachingService(model))


def scripted_pipeline(extraction_model, coaching_model, history_window: int = 10) -> ChatPipeline:
    return ChatPipeline(ExtractionService(extraction_model), CoachingService(coaching_model), history_window)


class TestOfflinePipeline:
    async def test_nlp_message_completes_goal(self, store, offline_pipeline):
        result = await offline_pipeline.process(store, "I finished the NLP part for week 1")

        assert result.method == "fallback"
        assert result.mission_id == 1
        assert [g.id for g in result.completed_goals] == ["1-1"]
        assert result.response == NOT_CONFIGURED_REPLY

        progress = store.get(1)
        assert progress.status == Status.IN_PROGRESS
        assert progress.find_goal("1-1").completed
        # The "week 1" log action is not applied on top of the extraction log
        assert [log.text for log in progress.logs] == ["I finished the NLP part for week 1"]
        assert [m.role for m in store.chat_history()] == ["user", "assistant"]

    async def test_repeat_message_completes_nothing_new(self, store, offline_pipeline):
        await offline_pipeline.process(store, "I finished the NLP part for week 1")
        result = await offline_pipeline.process(store, "I finished the NLP part for week 1")

        assert result.completed_goals == []
        assert result.unmatched_tasks == ["the NLP part for week 1"]
        progress = store.get(1)
        assert sum(g.completed for g in progress.goals) == 1
        assert len(progress.goals) == 4
        assert len(progress.logs) == 2

    async def test_unresolved_mission_changes_no_progress(self, store, offline_pipeline):
        result = await offline_pipeline.process(store, "had a quiet day")

        assert result.mission_id is None
        assert store.stats().total_logs == 0
        assert len(store.chat_history()) == 2

    async def test_message_is_trimmed(self, store, offline_pipeline):
        await offline_pipeline.process(store, "   week 8 planning   ")
        assert store.get(8).logs[0].text == "week 8 planning"


class TestModelPipeline:
    async def test_ai_extraction_applied(self, store, fake_model):
        extraction = {
            "missionId": 2,
            "missionConfidence": "high",
            "completedTasks": ["comparison framework", "wrote a poem"],
            "inProgressTasks": ["model selection guide"],
            "newGoals": ["Benchmark latency across providers"],
        }
        pipeline = scripted_pipeline(fake_model([json.dumps(extraction)]), fake_model(["Great job!"]))

        result = await pipeline.process(store, "Wrapped up week 2 comparison framework, wrote a poem")

        assert result.method == "ai"
        assert result.response == "Great job!"
        assert [g.id for g in result.completed_goals] == ["2-1"]
        # Completed work that matches nothing never becomes a goal
        assert result.unmatched_tasks == ["wrote a poem"]
        # "model selection guide" duplicates an existing goal
        assert [g.text for g in result.added_goals] == ["Benchmark latency across providers"]
        assert [a.type for a in result.actions] == ["log", "check_completion"]

        progress = store.get(2)
        assert len(progress.goals) == 5
        assert len(progress.logs) == 1

    async def test_log_action_for_other_mission(self, store, fake_model):
        pipeline = scripted_pipeline(fake_model(['{"missionId": 2}']), fake_model(["ok"]))

        await pipeline.process(store, "Week 3 is next, today was model comparisons")

        assert len(store.get(2).logs) == 1
        assert [log.text for log in store.get(3).logs] == ["Week 3 is next, today was model comparisons"]

    async def test_coach_sees_prior_turns_only(self, store, fake_model):
        coach = fake_model(["first reply", "second reply"])
        pipeline = scripted_pipeline(UnconfiguredModel(), coach, history_window=10)

        await pipeline.process(store, "hello")
        await pipeline.process(store, "week 4 data cleaning")

        first, second = coach.calls
        assert len(first["messages"]) == 1
        assert [m["content"] for m in second["messages"][:2]] == ["hello", "first reply"]
        assert second["messages"][-1]["content"].endswith("User message: week 4 data cleaning")
        # Coach prompt focuses on the extracted mission
        assert "currently working on Week 4" in second["system"]

    async def test_history_window_limits_turns(self, store, fake_model):
        coach = fake_model()
        pipeline = scripted_pipeline(UnconfiguredModel(), coach, history_window=2)

        for text in ("one", "two", "three"):
            await pipeline.process(store, text)

        last = coach.calls[-1]["messages"]
        assert [m["content"] for m in last[:-1]] == ["two", "Nice work, keep it up!"]

    async def test_coach_failure_still_records_progress(self, store, fake_model):
        pipeline = scripted_pipeline(UnconfiguredModel(), fake_model(error=RuntimeError("overloaded")))

        result = await pipeline.process(store, "I finished the NLP part for week 1")

        assert store.get(1).find_goal("1-1").completed
        assert result.completed_goals


class TestSerialization:
    async def test_concurrent_messages_are_serialized(self, store, offline_pipeline):
        await asyncio.gather(
            offline_pipeline.process(store, "week 5 image analysis tasks"),
            offline_pipeline.process(store, "week 5 vision model capabilities"),
        )

        assert [m.role for m in store.chat_history()] == ["user", "assistant", "user", "assistant"]
        assert len(store.get(5).logs) == 2

    async def test_session_lock_released_with_store(self, cache, offline_pipeline):
        store = ProgressStore(cache)
        await offline_pipeline.process(store, "hello")
        assert len(offline_pipeline._session_locks) == 1

        del store
        gc.collect()

        assert len(offline_pipeline._session_locks) == 0
