import pytest
from pydantic import ValidationError

from .config import FeedSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("ELASTICSEARCH_URL", "ELASTICSEARCH_API_KEY", "REDIS_URL"):
        monkeypatch.delenv(var, raising=False)
    for name in FeedSettings.model_fields:
        monkeypatch.delenv(f"FEED_{name.upper()}", raising=False)


def test_defaults():
    settings = FeedSettings.from_env()
    assert settings.cache_ttl_seconds == 600
    assert settings.retry_max_attempts == 3
    assert settings.retry_initial_backoff == 1.0
    assert settings.circuit_failure_rate_threshold == 50.0
    assert settings.circuit_sliding_window_size == 10
    assert settings.circuit_minimum_calls == 5
    assert settings.circuit_open_seconds == 30.0
    assert settings.circuit_half_open_calls == 3
    assert settings.suggestion_max_concurrent_reads == 10
    assert settings.redis_url is None


def test_reads_prefixed_and_connection_variables(monkeypatch):
    monkeypatch.setenv("FEED_CACHE_TTL_SECONDS", "120")
    monkeypatch.setenv("FEED_CIRCUIT_OPEN_SECONDS", "5.5")
    monkeypatch.setenv("FEED_SUGGESTION_MAX_CONCURRENT_READS", "4")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")
    monkeypatch.setenv("ELASTICSEARCH_URL", "http://es:9200")

    settings = FeedSettings.from_env()

    assert settings.cache_ttl_seconds == 120
    assert settings.circuit_open_seconds == 5.5
    assert settings.suggestion_max_concurrent_reads == 4
    assert settings.redis_url == "redis://cache:6379/0"
    assert settings.elasticsearch_url == "http://es:9200"


def test_rejects_invalid_values(monkeypatch):
    monkeypatch.setenv("FEED_RETRY_MAX_ATTEMPTS", "0")
    with pytest.raises(ValidationError):
        FeedSettings.from_env()
