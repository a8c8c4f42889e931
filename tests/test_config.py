"""
Tests for environment-driven settings.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from backend_veriai.config import env
from backend_veriai.config.settings import Settings, get_settings


def test_settings_read_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("VERIAI_DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("CHAIN_GATEWAY_URL", "http://gateway:8080/")
    monkeypatch.setenv("REDTEAM_URL", "http://redteam/probe")
    monkeypatch.setenv("INTER_JOB_DELAY_SEC", "0.5")
    monkeypatch.setenv("CACHE_TTL_HOURS", "1")
    monkeypatch.setenv("LLM_TIMEOUT_SEC", "-3")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    settings = get_settings()
    assert settings.db_path == Path(tmp_path / "x.db")
    assert settings.chain_gateway_url == "http://gateway:8080"
    assert settings.redteam_url == "http://redteam/probe"
    assert settings.openai_api_key is None
    assert settings.inter_job_delay_sec == 0.5
    assert settings.cache_ttl_sec == 3600
    assert settings.llm_timeout_sec == env.DEFAULT_LLM_TIMEOUT_SEC


def test_invalid_number_raises(monkeypatch):
    monkeypatch.setenv("EVENT_CHANNEL_MAXSIZE", "lots")
    with pytest.raises(ValueError, match="EVENT_CHANNEL_MAXSIZE"):
        get_settings()


def test_defaults():
    settings = Settings()
    assert settings.cache_ttl_sec == 24 * 3600
    assert settings.inter_job_delay_sec == 2.0
    assert settings.redteam_url is None
