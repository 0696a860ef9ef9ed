"""SQLite key-value cache holding the local copy of progress and chat."""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

PROGRESS_NAMESPACE = "ai-missions-progress"
CHAT_NAMESPACE = "ai-missions-chat"

ANONYMOUS_OWNER = "anonymous"


def owner_key(owner: Optional[str]) -> str:
    """Cache key for an owner; user ids are prefixed so none can collide with the anonymous key."""
    return f"user:{owner}" if owner else ANONYMOUS_OWNER


class LocalCache:
    """Durable JSON documents keyed by (namespace, owner)."""

    def __init__(self, db_path: str = "data/cache.db"):
        """Initialize database."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create the cache table if it doesn't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cache (
                    namespace TEXT NOT NULL,
                    owner TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, owner)
                )
            """)
            conn.commit()
        logger.info(f"Cache initialized at {self.db_path}")

    def get(self, namespace: str, owner: Optional[str] = None) -> Optional[Any]:
        """
        Load a cached document.

        Args:
            namespace: Document kind, e.g. PROGRESS_NAMESPACE
            owner: User id, or None for the anonymous session

        Returns:
            Decoded JSON value, or None if absent or unreadable
        """
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT value FROM cache WHERE namespace = ? AND owner = ?",
                (namespace, owner_key(owner)),
            )
            row = cursor.fetchone()

        if not row:
            return None

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding unreadable cache entry {namespace}/{owner}: {e}")
            return None

    def put(self, namespace: str, owner: Optional[str], value: Any):
        """Insert or replace a cached document."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO cache (namespace, owner, value, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (namespace, owner)
                DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (
                    namespace,
                    owner_key(owner),
                    json.dumps(value),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
