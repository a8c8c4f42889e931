"""
Application settings.

Collects everything the agent reads from the environment into one frozen
dataclass so the runtime, CLI tools and tests share a single source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from backend_veriai.config import env


@dataclass(frozen=True)
class Settings:
    """Typed view of VeriAI configuration."""

    db_path: Path = field(default_factory=lambda: Path(env.DEFAULT_DB_PATH))
    chain_events_ws_url: str = ""
    chain_gateway_url: str = env.DEFAULT_CHAIN_GATEWAY_URL
    hf_api_url: str = env.DEFAULT_HF_API_URL
    backend_url: str = env.DEFAULT_BACKEND_URL
    redteam_url: str | None = None
    openai_api_key: str | None = None
    openai_model: str = env.DEFAULT_OPENAI_MODEL
    frontend_notify_url: str | None = None
    inter_job_delay_sec: float = env.DEFAULT_INTER_JOB_DELAY_SEC
    event_channel_maxsize: int = env.DEFAULT_EVENT_CHANNEL_MAXSIZE
    cache_ttl_hours: float = env.DEFAULT_CACHE_TTL_HOURS
    reader_timeout_sec: float = env.DEFAULT_READER_TIMEOUT_SEC
    prober_timeout_sec: float = env.DEFAULT_PROBER_TIMEOUT_SEC
    llm_timeout_sec: float = env.DEFAULT_LLM_TIMEOUT_SEC
    notify_timeout_sec: float = env.DEFAULT_NOTIFY_TIMEOUT_SEC

    @property
    def cache_ttl_sec(self) -> int:
        return int(self.cache_ttl_hours * 3600)


def get_settings() -> Settings:
    """
    Return the current application settings.

    Reads the environment (and .env) on every call; callers that need a
    stable view should keep the returned object.
    """
    return Settings(
        db_path=env.get_db_path(),
        chain_events_ws_url=env.get_chain_events_ws_url(),
        chain_gateway_url=env.get_chain_gateway_url(),
        hf_api_url=env.get_hf_api_url(),
        backend_url=env.get_backend_url(),
        redteam_url=env.get_redteam_url(),
        openai_api_key=env.get_openai_api_key(),
        openai_model=env.get_openai_model(),
        frontend_notify_url=env.get_frontend_notify_url(),
        inter_job_delay_sec=env.get_inter_job_delay_sec(),
        event_channel_maxsize=env.get_event_channel_maxsize(),
        cache_ttl_hours=env.get_cache_ttl_hours(),
        reader_timeout_sec=env.get_timeout("READER_TIMEOUT_SEC", env.DEFAULT_READER_TIMEOUT_SEC),
        prober_timeout_sec=env.get_timeout("PROBER_TIMEOUT_SEC", env.DEFAULT_PROBER_TIMEOUT_SEC),
        llm_timeout_sec=env.get_timeout("LLM_TIMEOUT_SEC", env.DEFAULT_LLM_TIMEOUT_SEC),
        notify_timeout_sec=env.get_timeout("NOTIFY_TIMEOUT_SEC", env.DEFAULT_NOTIFY_TIMEOUT_SEC),
    )
