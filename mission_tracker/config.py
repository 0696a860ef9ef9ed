"""Application configuration."""

import os
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Language model
    anthropic_api_key: Optional[str] = os.getenv("CLAUDE_API_KEY") or None
    llm_model: str = os.getenv("LLM_MODEL", "claude-haiku-4-5-20251001")
    llm_max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "1024"))
    llm_timeout: float = float(os.getenv("LLM_TIMEOUT", "30"))

    # Remote store (PostgREST / Supabase)
    supabase_url: Optional[str] = os.getenv("SUPABASE_URL") or None
    supabase_key: Optional[str] = os.getenv("SUPABASE_KEY") or None
    remote_timeout: float = float(os.getenv("REMOTE_TIMEOUT", "10"))

    # Local cache
    cache_path: str = os.getenv("CACHE_PATH", "data/cache.db")

    # Server
    server_host: str = os.getenv("SERVER_HOST", "0.0.0.0")
    server_port: int = int(os.getenv("SERVER_PORT", "3001"))
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Coaching
    history_window: int = 10  # chat turns sent along with each coaching request

    # Sessions
    max_sessions: int = int(os.getenv("MAX_SESSIONS", "1000"))  # loaded user stores kept in memory

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def remote_configured(self) -> bool:
        """Whether both remote store credentials are present."""
        return bool(self.supabase_url and self.supabase_key)


settings = Settings()
