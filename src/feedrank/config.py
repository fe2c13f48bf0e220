"""Runtime configuration read from environment variables.

Values come from ``os.environ`` (populated from ``.env`` by the package
``__init__``).  ``FeedSettings.from_env()`` is called once in the app lifespan;
tests build ``FeedSettings`` directly with the knobs they need.
"""

import os

from pydantic import BaseModel, ConfigDict, Field


class FeedSettings(BaseModel):
    """Tunables for the feed service and its collaborators."""

    model_config = ConfigDict(frozen=True)

    elasticsearch_url: str = Field("http://localhost:9200")
    elasticsearch_api_key: str | None = Field(None)
    redis_url: str | None = Field(
        None, description="Redis URL for the feed cache; caching is disabled when unset"
    )

    cache_ttl_seconds: int = Field(600, ge=1)

    retry_max_attempts: int = Field(3, ge=1)
    retry_initial_backoff: float = Field(1.0, ge=0)
    retry_backoff_factor: float = Field(2.0, ge=1)
    retry_max_backoff: float = Field(8.0, ge=0)

    aggregation_timeout_seconds: float = Field(5.0, gt=0)
    suggestion_max_concurrent_reads: int = Field(10, ge=1)

    circuit_failure_rate_threshold: float = Field(50.0, gt=0, le=100)
    circuit_sliding_window_size: int = Field(10, ge=1)
    circuit_minimum_calls: int = Field(5, ge=1)
    circuit_open_seconds: float = Field(30.0, ge=0)
    circuit_half_open_calls: int = Field(3, ge=1)

    @classmethod
    def from_env(cls) -> "FeedSettings":
        env = os.environ
        values: dict[str, str] = {}
        for field_name in cls.model_fields:
            raw = env.get(f"FEED_{field_name.upper()}")
            if raw is not None and raw != "":
                values[field_name] = raw
        # The connection URLs follow the conventional unprefixed names.
        for field_name, var in (
            ("elasticsearch_url", "ELASTICSEARCH_URL"),
            ("elasticsearch_api_key", "ELASTICSEARCH_API_KEY"),
            ("redis_url", "REDIS_URL"),
        ):
            if env.get(var):
                values[field_name] = env[var]
        return cls.model_validate(values)
