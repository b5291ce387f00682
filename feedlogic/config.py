from __future__ import annotations

from dataclasses import dataclass, field

from . import canon
from .exceptions import ConfigError, require
from .retry import RetryPolicy


@dataclass(frozen=True)
class CacheTTLConfig:
    # Lifetimes per data class, ms
    feed_list_ms: int = canon.FEED_LIST_TTL_MS
    series_ms: int = canon.SERIES_TTL_MS
    live_value_ms: int = canon.LIVE_VALUE_TTL_MS

    def __post_init__(self):
        for name in ("feed_list_ms", "series_ms", "live_value_ms"):
            require(getattr(self, name) > 0, f"{name} must be positive.", ConfigError)
        require(
            self.live_value_ms <= self.feed_list_ms <= self.series_ms,
            "TTLs must satisfy live_value_ms <= feed_list_ms <= series_ms.",
            ConfigError,
        )


@dataclass(frozen=True)
class DisplayConfig:
    chart_width_px: int = 400
    pixels_per_point: float = 1.0
    # Ranges longer than this get a coarser point budget
    long_range_hours: float = 24
    long_range_factor: float = 2.0
    # Series at least this long yield to the event loop between stages
    yield_threshold: int = 2000
    tz: str = canon.DEFAULT_TZ

    def __post_init__(self):
        require(self.chart_width_px > 0, "chart_width_px must be positive.", ConfigError)
        require(self.pixels_per_point > 0, "pixels_per_point must be positive.", ConfigError)
        require(self.long_range_factor >= 1.0, "long_range_factor must be >= 1.", ConfigError)
        require(self.yield_threshold >= 0, "yield_threshold must be >= 0.", ConfigError)


@dataclass(frozen=True)
class PipelineConfig:
    ttl: CacheTTLConfig = field(default_factory=CacheTTLConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    # Live polling is its own retry loop
    live_retry: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=1)
    )

    timeout_s: float = 30.0
    long_range_timeout_s: float = 60.0
    long_range_timeout_hours: float = 24 * 30
    live_timeout_s: float = 10.0

    cancel_superseded: bool = True

    def __post_init__(self):
        for name in ("timeout_s", "long_range_timeout_s", "live_timeout_s"):
            require(getattr(self, name) > 0, f"{name} must be positive.", ConfigError)

    def timeout_for(self, range_hours: float) -> float:
        if range_hours > self.long_range_timeout_hours:
            return self.long_range_timeout_s
        return self.timeout_s


def default_config() -> PipelineConfig:
    return PipelineConfig()
