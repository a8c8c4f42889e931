"""
Environment variable loading and validation for VeriAI.

- VERIAI_DB_PATH: SQLite file for insights, snapshots and the evaluation cache
- CHAIN_EVENTS_WS_URL: WebSocket feed of decoded rating contract events
- CHAIN_GATEWAY_URL: HTTP gateway exposing contract reads (stats, ratings)
- HF_API_URL / BACKEND_URL / REDTEAM_URL: model card, benchmark and red-team services
- OPENAI_API_KEY / OPENAI_MODEL: language model used for insight synthesis
- FRONTEND_NOTIFY_URL: optional webhook for high-risk insights
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_veriai/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_DB_PATH = "veriai.db"
DEFAULT_HF_API_URL = "https://huggingface.co/api"
DEFAULT_BACKEND_URL = "http://localhost:5000"
DEFAULT_CHAIN_GATEWAY_URL = "http://localhost:8545"
DEFAULT_OPENAI_MODEL = "gpt-4-turbo-preview"

DEFAULT_INTER_JOB_DELAY_SEC = 2.0
DEFAULT_EVENT_CHANNEL_MAXSIZE = 1024
DEFAULT_CACHE_TTL_HOURS = 24.0

# Per-collaborator timeouts (seconds); the pipeline itself never cancels a job
DEFAULT_READER_TIMEOUT_SEC = 15.0
DEFAULT_PROBER_TIMEOUT_SEC = 60.0
DEFAULT_LLM_TIMEOUT_SEC = 60.0
DEFAULT_NOTIFY_TIMEOUT_SEC = 10.0


def load_veriai_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    load_dotenv(_ENV_PATH)


def _get_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _get_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _get_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def get_db_path() -> Path:
    """Return VERIAI_DB_PATH (default: veriai.db in cwd)."""
    load_veriai_env()
    return Path(_get_str("VERIAI_DB_PATH", DEFAULT_DB_PATH) or DEFAULT_DB_PATH)


def get_chain_events_ws_url() -> str:
    """
    Return CHAIN_EVENTS_WS_URL. Empty string means the watcher has no
    event feed and only manual triggers reach the pipeline.
    """
    load_veriai_env()
    return _get_str("CHAIN_EVENTS_WS_URL")


def get_chain_gateway_url() -> str:
    load_veriai_env()
    return _get_str("CHAIN_GATEWAY_URL", DEFAULT_CHAIN_GATEWAY_URL).rstrip("/")


def get_hf_api_url() -> str:
    load_veriai_env()
    return _get_str("HF_API_URL", DEFAULT_HF_API_URL).rstrip("/")


def get_backend_url() -> str:
    """Benchmark service base URL (BACKEND_URL)."""
    load_veriai_env()
    return _get_str("BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/")


def get_redteam_url() -> str | None:
    """Return REDTEAM_URL or None when no security prober is deployed."""
    load_veriai_env()
    return _get_str("REDTEAM_URL") or None


def get_openai_api_key() -> str | None:
    load_veriai_env()
    return _get_str("OPENAI_API_KEY") or None


def get_openai_model() -> str:
    load_veriai_env()
    return _get_str("OPENAI_MODEL", DEFAULT_OPENAI_MODEL) or DEFAULT_OPENAI_MODEL


def get_frontend_notify_url() -> str | None:
    load_veriai_env()
    return _get_str("FRONTEND_NOTIFY_URL") or None


def get_inter_job_delay_sec() -> float:
    load_veriai_env()
    return max(0.0, _get_float("INTER_JOB_DELAY_SEC", DEFAULT_INTER_JOB_DELAY_SEC))


def get_event_channel_maxsize() -> int:
    load_veriai_env()
    return max(1, _get_int("EVENT_CHANNEL_MAXSIZE", DEFAULT_EVENT_CHANNEL_MAXSIZE))


def get_cache_ttl_hours() -> float:
    load_veriai_env()
    return _get_float("CACHE_TTL_HOURS", DEFAULT_CACHE_TTL_HOURS)


def get_timeout(name: str, default: float) -> float:
    """Read a per-collaborator timeout (seconds); non-positive values fall back to default."""
    load_veriai_env()
    value = _get_float(name, default)
    return value if value > 0 else default


def print_veriai_startup(script_name: str) -> None:
    """Print DB path and configured collaborators at script start."""
    load_veriai_env()
    ws = get_chain_events_ws_url() or "-"
    redteam = get_redteam_url() or "-"
    llm = "openai" if get_openai_api_key() else "fallback-only"
    print(
        f"[veriai] {script_name} | db={get_db_path()} | events={ws} "
        f"| redteam={redteam} | llm={llm}"
    )
