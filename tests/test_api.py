"""HTTP API tests against the ASGI app."""

import json

import pytest
from httpx import ASGITransport, AsyncClient

from mission_tracker import main
from mission_tracker.nlp.service import NOT_CONFIGURED_REPLY, CoachingService, ExtractionService, SummaryService
from mission_tracker.pipeline import ChatPipeline
from mission_tracker.progress.store import SessionRegistry


@pytest.fixture
async def client(monkeypatch, cache):
    """API client with an isolated session registry."""
    monkeypatch.setattr(main, "sessions", SessionRegistry(cache))
    async with AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as client:
        yield client


@pytest.fixture
def use_model(monkeypatch):
    """Swap the app's language model services for a scripted one."""

    def install(model):
        extraction = ExtractionService(model)
        coaching = CoachingService(model)
        monkeypatch.setattr(main, "extraction_service", extraction)
        monkeypatch.setattr(main, "coaching_service", coaching)
        monkeypatch.setattr(main, "pipeline", ChatPipeline(extraction, coaching))
        return model

    return install


class TestStatus:
    async def test_status(self, client):
        response = await client.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["ai_configured"] is False
        assert data["remote_configured"] is False

    async def test_missions(self, client):
        missions = (await client.get("/api/missions")).json()

        assert len(missions) == 10
        assert missions[0]["suggestedGoals"][1] == "Implement natural language processing for updates"


class TestProgressEndpoints:
    async def test_all_progress_defaults(self, client):
        data = (await client.get("/api/progress")).json()

        assert sorted(data, key=int) == [str(i) for i in range(1, 11)]
        assert data["1"]["status"] == "not_started"
        assert data["1"]["completedAt"] is None
        assert data["1"]["missionId"] == 1

    async def test_unknown_mission(self, client):
        assert (await client.get("/api/progress/12")).status_code == 404

    async def test_toggle_and_complete(self, client):
        goal = (await client.post("/api/progress/1/goals/1-0/toggle")).json()
        assert goal["completed"] is True

        for goal_id in ("1-1", "1-2", "1-3", "1-3"):
            response = await client.post(f"/api/progress/1/goals/{goal_id}/complete")
            assert response.status_code == 200

        progress = response.json()
        assert progress["status"] == "completed"
        assert progress["completedAt"] is not None

    async def test_toggle_unknown_goal(self, client):
        assert (await client.post("/api/progress/1/goals/nope/toggle")).status_code == 404

    async def test_complete_unknown_goal(self, client):
        response = await client.post("/api/progress/1/goals/nope/complete")

        assert response.status_code == 404
        assert (await client.get("/api/progress/1")).json()["status"] == "not_started"

    async def test_add_goal_and_duplicate(self, client):
        created = (await client.post("/api/progress/3/goals", json={"text": "Read ten papers"})).json()
        duplicate = (await client.post("/api/progress/3/goals", json={"text": "research workflow templates"})).json()

        assert created["text"] == "Read ten papers"
        assert duplicate["id"] == "3-2"
        assert len((await client.get("/api/progress/3")).json()["goals"]) == 5

    async def test_blank_goal_rejected(self, client):
        response = await client.post("/api/progress/3/goals", json={"text": "   "})
        assert response.status_code == 400

    async def test_remove_goal(self, client):
        response = await client.delete("/api/progress/4/goals/4-0")
        assert [g["id"] for g in response.json()["goals"]] == ["4-1", "4-2", "4-3"]

        assert (await client.delete("/api/progress/4/goals/4-0")).status_code == 404

    async def test_add_log_and_stats(self, client):
        log = (await client.post("/api/progress/5/logs", json={"text": "tried image captioning"})).json()
        assert log["text"] == "tried image captioning"

        stats = (await client.get("/api/stats")).json()
        assert stats["totalLogs"] == 1
        assert stats["totalGoals"] == 40

    async def test_sessions_isolated_by_user_header(self, client):
        await client.post("/api/progress/1/goals/1-0/toggle", headers={"X-User-Id": "alice"})

        alice = (await client.get("/api/progress/1", headers={"X-User-Id": "alice"})).json()
        anonymous = (await client.get("/api/progress/1")).json()

        assert alice["status"] == "in_progress"
        assert anonymous["status"] == "not_started"


class TestExtract:
    async def test_fallback_when_unconfigured(self, client):
        response = await client.post("/api/extract", json={"message": "I finished the NLP part for week 1"})

        data = response.json()
        assert data["method"] == "fallback"
        assert "error" not in data
        assert data["extracted"]["missionId"] == 1
        assert data["extracted"]["completedTasks"] == ["the NLP part for week 1"]

    async def test_ai_extraction(self, client, use_model, fake_model):
        use_model(fake_model(['Sure! {"missionId": 3, "missionConfidence": "high"}']))

        data = (await client.post("/api/extract", json={"message": "research day"})).json()

        assert data["method"] == "ai"
        assert data["extracted"]["missionId"] == 3
        assert data["extracted"]["missionConfidence"] == "high"

    async def test_model_error_reported(self, client, use_model, fake_model):
        use_model(fake_model(error=RuntimeError("rate limited")))

        data = (await client.post("/api/extract", json={"message": "week 2"})).json()

        assert data["method"] == "fallback"
        assert data["error"] == "rate limited"


class TestChat:
    async def test_not_configured_reply(self, client):
        data = (await client.post("/api/chat", json={"message": "finished week 6"})).json()

        assert data["response"] == NOT_CONFIGURED_REPLY
        assert data["error"]
        assert data["actions"][0] == {"type": "log", "missionId": 6, "text": "finished week 6"}
        assert data["actions"][1] == {"type": "check_completion"}

    async def test_reply_with_context(self, client, use_model, fake_model):
        model = use_model(fake_model(["Keep going!"]))

        data = (
            await client.post(
                "/api/chat",
                json={
                    "message": "hi",
                    "history": [{"role": "user", "content": "earlier"}],
                    "progressContext": "Week 1: in progress",
                    "systemPrompt": "Be kind",
                },
            )
        ).json()

        assert data == {"response": "Keep going!", "actions": []}
        assert model.calls[0]["system"] == "Be kind"
        assert "Week 1: in progress" in model.calls[0]["messages"][-1]["content"]


class TestMessages:
    async def test_message_updates_progress(self, client):
        data = (await client.post("/api/messages", json={"message": "I finished the NLP part for week 1"})).json()

        assert data["missionId"] == 1
        assert [g["id"] for g in data["completedGoals"]] == ["1-1"]

        progress = (await client.get("/api/progress/1")).json()
        assert progress["status"] == "in_progress"
        assert len(progress["logs"]) == 1

        history = (await client.get("/api/chat/history")).json()
        assert [m["role"] for m in history] == ["user", "assistant"]

    async def test_blank_message_rejected(self, client):
        assert (await client.post("/api/messages", json={"message": "  "})).status_code == 400


class TestSummary:
    async def test_fallback_summary(self, client):
        await client.post("/api/progress/2/goals/2-0/toggle")

        data = (await client.post("/api/summary")).json()

        assert "1 of 40 goals" in data["overview"]
        assert len(data["nextSteps"]) == 3

    async def test_model_summary(self, client, monkeypatch, fake_model):
        reply = {"overview": "Strong start", "strengths": "Focus", "challenges": "Time", "nextSteps": ["x"]}
        monkeypatch.setattr(main, "summary_service", SummaryService(fake_model([json.dumps(reply)])))

        data = (await client.post("/api/summary")).json()

        assert data["overview"] == "Strong start"
        assert data["nextSteps"] == ["x"]
