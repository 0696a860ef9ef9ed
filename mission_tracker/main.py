"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .config import settings
from .nlp.llm import build_model
from .nlp.models import (
    ChatTurnResult,
    CoachReply,
    CoachRequest,
    ExtractionRequest,
    ExtractionResponse,
    MessageRequest,
    WeeklySummary,
)
from .nlp.service import CoachingService, ExtractionService, SummaryService
from .pipeline import ChatPipeline
from .progress.cache import LocalCache
from .progress.catalog import get_mission, missions
from .progress.models import ChatMessage, Goal, LogEntry, MissionStats, Progress
from .progress.remote import RemoteStore
from .progress.store import ProgressStore, SessionRegistry

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Let pending remote mirrors finish on shutdown."""
    yield
    await sessions.close()


# Initialize FastAPI app
app = FastAPI(
    title="AI Missions Tracker",
    description="Natural-language progress tracking for the 10-week AI Missions challenge",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize components
model = build_model(settings)
remote = (
    RemoteStore(settings.supabase_url, settings.supabase_key, timeout=settings.remote_timeout)
    if settings.remote_configured
    else None
)
sessions = SessionRegistry(LocalCache(settings.cache_path), remote, settings.max_sessions)
extraction_service = ExtractionService(model)
coaching_service = CoachingService(model)
summary_service = SummaryService(model)
pipeline = ChatPipeline(extraction_service, coaching_service, settings.history_window)


class GoalRequest(BaseModel):
    """Request body for adding a goal."""

    text: str


class LogRequest(BaseModel):
    """Request body for adding a log entry."""

    text: str


async def get_store(user_id: Optional[str]) -> ProgressStore:
    """Resolve the caller's session; anonymous callers share the local one."""
    return await sessions.get(user_id or None)


def _mission_or_404(mission_id: int):
    mission = get_mission(mission_id)
    if mission is None:
        raise HTTPException(status_code=404, detail=f"Unknown mission: {mission_id}")
    return mission


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "AI Missions Tracker",
        "version": VERSION,
        "endpoints": {
            "messages": "/api/messages",
            "extract": "/api/extract",
            "chat": "/api/chat",
            "summary": "/api/summary",
            "progress": "/api/progress",
            "status": "/status",
        },
    }


@app.get("/status")
async def status():
    """Server status endpoint."""
    return {
        "status": "running",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ai_configured": model.available,
        "remote_configured": remote is not None,
    }


@app.get("/api/missions")
async def list_missions():
    """The static mission catalog."""
    return [
        {
            "id": mission.id,
            "week": mission.week,
            "title": mission.title,
            "description": mission.description,
            "suggestedGoals": list(mission.suggested_goals),
        }
        for mission in missions
    ]


@app.get("/api/progress", response_model=dict[int, Progress])
async def get_all_progress(user_id: Optional[str] = Header(None, alias="X-User-Id")):
    """Progress for every mission."""
    store = await get_store(user_id)
    return store.all()


@app.get("/api/progress/{mission_id}", response_model=Progress)
async def get_progress(mission_id: int, user_id: Optional[str] = Header(None, alias="X-User-Id")):
    """Progress for one mission."""
    _mission_or_404(mission_id)
    store = await get_store(user_id)
    return store.get(mission_id)


@app.post("/api/progress/{mission_id}/goals", response_model=Goal)
async def add_goal(
    mission_id: int,
    body: GoalRequest,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """
    Add a goal to a mission.

    Returns the existing goal instead if the text duplicates one.
    """
    _mission_or_404(mission_id)
    store = await get_store(user_id)
    try:
        goal, _ = await store.add_goal(mission_id, body.text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return goal


@app.post("/api/progress/{mission_id}/goals/{goal_id}/toggle", response_model=Goal)
async def toggle_goal(
    mission_id: int,
    goal_id: str,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Flip a goal between done and not done."""
    _mission_or_404(mission_id)
    store = await get_store(user_id)
    try:
        return await store.toggle_goal(mission_id, goal_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/progress/{mission_id}/goals/{goal_id}/complete", response_model=Progress)
async def complete_goal(
    mission_id: int,
    goal_id: str,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Mark a goal done; completing an already-done goal changes nothing."""
    _mission_or_404(mission_id)
    store = await get_store(user_id)
    if store.get(mission_id).find_goal(goal_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown goal {goal_id} in mission {mission_id}")
    await store.mark_goal_complete(mission_id, goal_id)
    return store.get(mission_id)


@app.delete("/api/progress/{mission_id}/goals/{goal_id}", response_model=Progress)
async def remove_goal(
    mission_id: int,
    goal_id: str,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Remove a goal from a mission."""
    _mission_or_404(mission_id)
    store = await get_store(user_id)
    try:
        await store.remove_goal(mission_id, goal_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return store.get(mission_id)


@app.post("/api/progress/{mission_id}/logs", response_model=LogEntry)
async def add_log(
    mission_id: int,
    body: LogRequest,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Append a progress note to a mission."""
    _mission_or_404(mission_id)
    store = await get_store(user_id)
    return await store.add_log(mission_id, body.text)


@app.get("/api/stats", response_model=MissionStats)
async def stats(user_id: Optional[str] = Header(None, alias="X-User-Id")):
    """Aggregate progress numbers."""
    store = await get_store(user_id)
    return store.stats()


@app.get("/api/chat/history", response_model=list[ChatMessage])
async def chat_history(user_id: Optional[str] = Header(None, alias="X-User-Id")):
    """Full chat history, oldest first."""
    store = await get_store(user_id)
    return store.chat_history()


@app.post("/api/extract", response_model=ExtractionResponse, response_model_exclude_none=True)
async def extract_endpoint(body: ExtractionRequest):
    """
    Extract structured progress data from a message.

    Falls back to local heuristics when the model is unavailable or its
    reply can't be parsed.
    """
    return await extraction_service.extract(body.message, body.extraction_prompt)


@app.post("/api/chat", response_model=CoachReply, response_model_exclude_none=True)
async def chat_endpoint(body: CoachRequest):
    """Coaching reply for a message with caller-supplied context."""
    return await coaching_service.reply(
        body.message,
        history=body.history,
        progress_context=body.progress_context,
        system_prompt=body.system_prompt,
    )


@app.post("/api/messages", response_model=ChatTurnResult)
async def message_endpoint(
    body: MessageRequest,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Process a chat message end to end and apply it to progress."""
    if not body.message.strip():
        raise HTTPException(status_code=400, detail="Message must not be empty")

    logger.info(f"Message from user {user_id or 'local'}")
    store = await get_store(user_id)
    return await pipeline.process(store, body.message)


@app.post("/api/summary", response_model=WeeklySummary)
async def summary_endpoint(user_id: Optional[str] = Header(None, alias="X-User-Id")):
    """Weekly summary of the caller's progress."""
    store = await get_store(user_id)
    return await summary_service.summarize(store.all(), store.chat_history(), store.stats())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
