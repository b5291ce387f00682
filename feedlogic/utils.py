# feedlogic/utils.py
from __future__ import annotations
import math
import time
from typing import Callable, Optional, Union, cast

import numpy as np
import pandas as pd

from . import canon
from .exceptions import DownsampleError, RangeError, require
from .types import SeriesFrame, TimeRangeSpec

Clock = Callable[[], int]
RangeLike = Union[TimeRangeSpec, str, int, float]


def now_ms() -> int:
    """Wall-clock epoch milliseconds."""
    return int(time.time() * 1000)


def as_number(raw) -> float:
    """Coerce one scalar to float; anything non-numeric becomes NaN."""
    if isinstance(raw, bool) or raw is None:
        return math.nan
    if isinstance(raw, (int, float, np.integer, np.floating)):
        try:
            return float(raw)
        except OverflowError:
            return math.nan
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            return float(raw.strip())
        except (ValueError, OverflowError):
            return math.nan
    return math.nan


def resolve_range(rng: RangeLike) -> TimeRangeSpec:
    """Accept a TimeRangeSpec, a standard range name ('day', 'week', ...) or hours."""
    if isinstance(rng, TimeRangeSpec):
        return rng
    if isinstance(rng, str):
        entry = canon.TIME_RANGES.get(rng.strip().lower())
        if entry is None:
            raise RangeError(
                f"Unknown time range {rng!r}. Expected one of: "
                f"{', '.join(canon.TIME_RANGES)}."
            )
        window_s, interval_s, label = entry
        return TimeRangeSpec(window_s, interval_s, label)
    if isinstance(rng, bool) or not isinstance(rng, (int, float)):
        raise RangeError(f"Cannot interpret {rng!r} as a time range.")
    return TimeRangeSpec.from_hours(float(rng))


def standard_ranges() -> list[TimeRangeSpec]:
    return [resolve_range(name) for name in canon.TIME_RANGES]


def clamp_zoom(zoom: float) -> float:
    """Clamp a UI pinch factor into the supported zoom band."""
    return float(min(canon.ZOOM_MAX, max(canon.ZOOM_MIN, zoom)))


def effective_interval(base_interval_s: int, zoom: float = 1.0) -> int:
    """
    Request interval after zoom: max(60, floor(base / zoom)).
    Zoom outside [1.0, 5.0] is a caller bug.
    """
    require(base_interval_s > 0, "Base interval must be positive.", RangeError)
    require(
        canon.ZOOM_MIN <= zoom <= canon.ZOOM_MAX,
        f"Zoom factor {zoom} outside [{canon.ZOOM_MIN}, {canon.ZOOM_MAX}].",
        RangeError,
    )
    return max(canon.MIN_INTERVAL_S, int(math.floor(base_interval_s / zoom)))


def _fmt_number(x: float) -> str:
    x = float(x)
    return str(int(x)) if x.is_integer() else repr(x)


def cache_key(
    feed_id: str, range_hours: float, interval_s: int, points: Optional[int] = None
) -> str:
    """
    Composite series key: '<feed>-<hours>-<interval>', plus '-p<points>'
    when the cached chart was reduced to a point budget.

    The trailing fields never contain '-', so the key splits back
    unambiguously from the right even when the feed id does.
    """
    key = f"{feed_id}-{_fmt_number(range_hours)}-{int(interval_s)}"
    if points is not None:
        key += f"-p{int(points)}"
    return key


def live_key(feed_id: str) -> str:
    return f"live:{feed_id}"


def feed_list_key() -> str:
    return "feeds"


def target_point_count(
    chart_width_px: int,
    range_hours: float,
    *,
    pixels_per_point: float = 1.0,
    long_range_hours: float = 24,
    long_range_factor: float = 2.0,
) -> int:
    """
    Point budget for a chart: one point per ``pixels_per_point`` pixels,
    divided by ``long_range_factor`` for ranges beyond ``long_range_hours``.
    """
    require(chart_width_px > 0, "Chart width must be positive.", DownsampleError)
    require(pixels_per_point > 0, "pixels_per_point must be positive.", DownsampleError)
    budget = chart_width_px / pixels_per_point
    if range_hours > long_range_hours:
        budget /= long_range_factor
    return max(canon.MIN_DOWNSAMPLE_LENGTH, int(math.floor(budget)))


def build_series_frame(timestamps, values) -> SeriesFrame:
    """Build a sorted SeriesFrame from aligned timestamp/value arrays."""
    df = pd.DataFrame(
        {
            canon.INDEX_NAME: np.asarray(timestamps, dtype=np.int64),
            canon.VALUE_COL: np.asarray(values, dtype=float),
        }
    ).set_index(canon.INDEX_NAME)
    # mergesort keeps arrival order for equal timestamps
    df = df.sort_index(kind="mergesort")
    df.__class__ = SeriesFrame
    return cast(SeriesFrame, df)


def empty_series() -> SeriesFrame:
    """
    Return an empty SeriesFrame with the correct index and column.
    """
    return build_series_frame([], [])
