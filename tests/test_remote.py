"""Tests for the PostgREST remote store client."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from mission_tracker.progress.models import ChatMessage, Progress, Status
from mission_tracker.progress.remote import RemoteStore, RemoteStoreError


def make_remote(handler) -> RemoteStore:
    remote = RemoteStore("https://example.supabase.co/", "secret-key")
    remote._client = httpx.AsyncClient(transport=httpx.MockTransport(handler), headers=remote.headers)
    return remote


async def test_upsert_progress_request():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201)

    remote = make_remote(handler)
    progress = Progress(
        mission_id=2,
        status=Status.IN_PROGRESS,
        goals=[{"id": "2-0", "text": "Research major AI model families", "completed": True}],
    )

    await remote.upsert_progress("user-1", progress)

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/progress"
    assert request.url.params["on_conflict"] == "user_id,mission_id"
    assert "merge-duplicates" in request.headers["Prefer"]
    assert request.headers["apikey"] == "secret-key"
    assert request.headers["Authorization"] == "Bearer secret-key"

    body = json.loads(request.content)
    assert body["user_id"] == "user-1"
    assert body["mission_id"] == 2
    assert body["status"] == "in_progress"
    assert body["goals"] == [{"id": "2-0", "text": "Research major AI model families", "completed": True}]
    assert body["completed_at"] is None


async def test_error_status_raises():
    remote = make_remote(lambda request: httpx.Response(503, text="down for maintenance"))

    with pytest.raises(RemoteStoreError, match="503"):
        await remote.upsert_progress("user-1", Progress(mission_id=1, status=Status.NOT_STARTED))


async def test_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    remote = make_remote(handler)

    with pytest.raises(RemoteStoreError):
        await remote.fetch_progress("user-1")


async def test_fetch_progress_parses_rows():
    rows = [
        {
            "user_id": "user-1",
            "mission_id": 3,
            "status": "completed",
            "goals": [{"id": "3-0", "text": "Learn advanced prompting for research", "completed": True}],
            "logs": [{"id": 1767614400000, "text": "done", "timestamp": "2026-01-05T12:00:00+00:00"}],
            "completed_at": "2026-01-05T12:00:00+00:00",
        },
        {"user_id": "user-1", "mission_id": 4, "status": None, "goals": None, "logs": None},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["user_id"] == "eq.user-1"
        return httpx.Response(200, json=rows)

    progress = await make_remote(handler).fetch_progress("user-1")

    assert progress[0].status == Status.COMPLETED
    assert progress[0].goals[0].completed
    assert progress[0].logs[0].text == "done"
    assert progress[0].completed_at == datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)
    assert progress[1].status == Status.NOT_STARTED
    assert progress[1].goals == []


async def test_chat_round_trip_request_shape():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "GET":
            return httpx.Response(
                200,
                json=[{"role": "assistant", "content": "hi", "created_at": "2026-01-05T12:00:00+00:00"}],
            )
        return httpx.Response(201)

    remote = make_remote(handler)
    message = ChatMessage(role="user", content="hello", timestamp=datetime(2026, 1, 5, tzinfo=timezone.utc))

    await remote.insert_chat("user-1", message)
    history = await remote.fetch_chat("user-1")

    assert json.loads(seen[0].content)["content"] == "hello"
    assert seen[1].url.params["order"] == "created_at.asc"
    assert history[0].role == "assistant"


async def test_close_resets_client():
    remote = make_remote(lambda request: httpx.Response(200, json=[]))
    await remote.close()

    assert remote._client is None
