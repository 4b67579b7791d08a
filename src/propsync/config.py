"""Client configuration for propsync."""

from __future__ import annotations

import dataclasses
import math
import os
from typing import Any

from propsync._constants import (
    BASE_URL,
    DEFAULT_GC_TIME,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STALE_TIME,
    UNAUTHORIZED_BEHAVIORS,
    UNAUTHORIZED_THROW,
)
from propsync.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_seconds(value: str) -> float:
    normalized = value.strip().lower()
    if normalized in {"inf", "infinity", "never"}:
        return math.inf
    return float(normalized)


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        API origin. Query-key paths (``/api/...``) are appended to it.
    stale_time : float
        Seconds after a successful fetch before an entry counts as stale
        on its own. Defaults to infinity: data only goes stale through
        invalidation.
    gc_time : float
        Seconds an entry with no subscribers is kept before it is
        garbage-collected. ``0`` collects as soon as the last subscriber
        leaves; ``inf`` disables collection.
    request_timeout : float
        Total timeout for a single HTTP request, in seconds.
    keep_previous_data : bool
        While refetching an entry that already has data, keep views in
        their populated state instead of falling back to loading.
    unauthorized_behavior : str
        ``"throw"`` raises on HTTP 401 during reads; ``"return_null"``
        resolves the read to ``None`` instead.
    api_trace_enabled : bool
        Log redacted request and response bodies at DEBUG level.
    """

    base_url: str = BASE_URL
    stale_time: float = DEFAULT_STALE_TIME
    gc_time: float = DEFAULT_GC_TIME
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    keep_previous_data: bool = True
    unauthorized_behavior: str = UNAUTHORIZED_THROW
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if self.stale_time < 0:
            raise ConfigError(f"stale_time must be >= 0, got {self.stale_time}")
        if self.gc_time < 0:
            raise ConfigError(f"gc_time must be >= 0, got {self.gc_time}")
        if self.request_timeout <= 0:
            raise ConfigError(f"request_timeout must be > 0, got {self.request_timeout}")
        if self.unauthorized_behavior not in UNAUTHORIZED_BEHAVIORS:
            raise ConfigError(
                f"unauthorized_behavior must be one of {sorted(UNAUTHORIZED_BEHAVIORS)}, "
                f"got {self.unauthorized_behavior!r}"
            )
        # Normalise so "http://host/" + "/api/x" never doubles the slash.
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_env(cls, **overrides: Any) -> SyncConfig:
        """Create configuration from ``PROPSYNC_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        base_url = env.get("PROPSYNC_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url

        unauthorized = env.get("PROPSYNC_UNAUTHORIZED_BEHAVIOR")
        if unauthorized is not None:
            config_kwargs["unauthorized_behavior"] = unauthorized.strip().lower()

        _ENV_SECONDS_MAP = {
            "PROPSYNC_STALE_TIME": "stale_time",
            "PROPSYNC_GC_TIME": "gc_time",
            "PROPSYNC_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_key, field_name in _ENV_SECONDS_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = _env_seconds(val)
            except ValueError as exc:
                raise ConfigError(f"{env_key} must be a number of seconds, got {val!r}") from exc

        if "keep_previous_data" not in overrides:
            config_kwargs["keep_previous_data"] = _env_bool(env.get("PROPSYNC_KEEP_PREVIOUS_DATA"), True)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(env.get("PROPSYNC_API_TRACE_ENABLED"), False)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
