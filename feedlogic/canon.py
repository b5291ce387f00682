from __future__ import annotations
from typing import Final, Dict, Tuple

INDEX_NAME: Final[str] = "timestamp"
VALUE_COL: Final[str] = "value"
DEFAULT_TZ: Final[str] = "UTC"
DEFAULT_PROFILE: Final[str] = "default"

# Record-style payload entries: {"timestamp": ..., "value": ...}
COMMON_TIMESTAMP_NAMES = ("timestamp", "time", "ts", "t")
COMMON_VALUE_NAMES = ("value", "v", "y")

# Epoch values at or above this are treated as milliseconds
MS_TIMESTAMP_THRESHOLD: Final[float] = 1e11

# Series of this length or shorter are never downsampled
MIN_DOWNSAMPLE_LENGTH: Final[int] = 2

# Cache lifetimes per data class (ms)
FEED_LIST_TTL_MS: Final[int] = 5 * 60 * 1000
SERIES_TTL_MS: Final[int] = 30 * 60 * 1000
LIVE_VALUE_TTL_MS: Final[int] = 1000

# Zoom / request interval bounds
ZOOM_MIN: Final[float] = 1.0
ZOOM_MAX: Final[float] = 5.0
MIN_INTERVAL_S: Final[int] = 60

# name -> (window seconds, base interval seconds, label)
TIME_RANGES: Dict[str, Tuple[int, int, str]] = {
    "day": (24 * 60 * 60, 120, "Day"),
    "week": (7 * 24 * 60 * 60, 900, "Week"),
    "month": (30 * 24 * 60 * 60, 3600, "Month"),
    "year": (365 * 24 * 60 * 60, 43200, "Year"),
}

# Default request interval for ad hoc ranges: (above hours, interval s)
INTERVAL_LADDER: Tuple[Tuple[float, int], ...] = (
    (24 * 30, 86400),
    (24 * 7, 3600),
    (24, 1800),
)
DEFAULT_INTERVAL_S: Final[int] = 900

# Label bands, inclusive upper bound in hours
LABEL_BAND_TIME_H: Final[float] = 24
LABEL_BAND_DAY_HOUR_H: Final[float] = 24 * 7
LABEL_BAND_DAY_H: Final[float] = 24 * 30

MONTH_ABBR = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)
