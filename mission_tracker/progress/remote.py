"""PostgREST (Supabase) client mirroring progress and chat rows."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from .models import ChatMessage, Progress

logger = logging.getLogger(__name__)


class RemoteStoreError(Exception):
    """Raised when the remote store rejects or fails a request."""


class RemoteStore:
    """REST client for the remote progress and chat_history tables."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0):
        """
        Initialize remote store client.

        Args:
            base_url: Project URL (e.g., https://xyz.supabase.co)
            api_key: Service or anon key
            timeout: Per-request timeout in seconds
        """
        self.rest_url = base_url.rstrip("/") + "/rest/v1"
        self.api_key = api_key
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> dict[str, str]:
        """Build request headers."""
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, table: str, **kwargs) -> httpx.Response:
        client = await self.get_client()
        url = f"{self.rest_url}/{table}"

        logger.debug(f"{method} {url}")
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"{method} {table} failed: {e}") from e

        if not response.is_success:
            raise RemoteStoreError(
                f"{method} {table} failed: {response.status_code} - {response.text}"
            )
        return response

    async def upsert_progress(self, user_id: str, progress: Progress):
        """
        Insert or replace the progress row for (user_id, mission_id).

        Args:
            user_id: Owner of the row
            progress: Record to mirror
        """
        data = progress.model_dump(mode="json")
        row = {
            "user_id": user_id,
            "mission_id": progress.mission_id,
            "status": data["status"],
            "goals": data["goals"],
            "logs": data["logs"],
            "completed_at": data["completed_at"],
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        await self._request(
            "POST",
            "progress",
            params={"on_conflict": "user_id,mission_id"},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            json=row,
        )
        logger.debug(f"Mirrored mission {progress.mission_id} for user {user_id}")

    async def insert_chat(self, user_id: str, message: ChatMessage):
        """Append one chat row."""
        await self._request(
            "POST",
            "chat_history",
            headers={"Prefer": "return=minimal"},
            json={
                "user_id": user_id,
                "role": message.role,
                "content": message.content,
                "created_at": message.timestamp.isoformat(),
            },
        )

    async def fetch_progress(self, user_id: str) -> list[Progress]:
        """
        Load every progress row for a user.

        Returns:
            List of Progress records, in no particular order
        """
        response = await self._request(
            "GET", "progress", params={"user_id": f"eq.{user_id}", "select": "*"}
        )
        return [self._parse_progress(row) for row in response.json()]

    async def fetch_chat(self, user_id: str) -> list[ChatMessage]:
        """Load a user's chat history, oldest first."""
        response = await self._request(
            "GET",
            "chat_history",
            params={"user_id": f"eq.{user_id}", "select": "*", "order": "created_at.asc"},
        )
        return [
            ChatMessage(role=row["role"], content=row["content"], timestamp=row["created_at"])
            for row in response.json()
        ]

    def _parse_progress(self, row: dict[str, Any]) -> Progress:
        return Progress(
            mission_id=row["mission_id"],
            status=row.get("status") or "not_started",
            goals=row.get("goals") or [],
            logs=row.get("logs") or [],
            completed_at=row.get("completed_at"),
        )
