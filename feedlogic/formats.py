from __future__ import annotations
from typing import Any, Iterable, List, Literal
from zoneinfo import ZoneInfo

import numpy as np
import pandas as pd

from . import canon, utils

Band = Literal["time", "day_hour", "day", "month"]

# pandas nanosecond timestamps stop a little after 2262
_MAX_EPOCH_S = 9.0e9


def label_band(range_hours: float) -> Band:
    """Pick the label style for a range; band edges are inclusive."""
    if range_hours <= canon.LABEL_BAND_TIME_H:
        return "time"
    if range_hours <= canon.LABEL_BAND_DAY_HOUR_H:
        return "day_hour"
    if range_hours <= canon.LABEL_BAND_DAY_H:
        return "day"
    return "month"


def _raw_label(raw: Any) -> str:
    return raw if isinstance(raw, str) else str(raw)


def _render(idx: pd.DatetimeIndex, band: Band) -> List[str]:
    if band == "time":
        return list(idx.strftime("%H:%M"))
    if band == "day_hour":
        return list(idx.strftime("%d/%m %H:00"))
    if band == "day":
        return list(idx.strftime("%d/%m"))
    # Fixed English abbreviations; strftime('%b') follows the process locale
    return [canon.MONTH_ABBR[m - 1] for m in idx.month]


def format_labels(
    timestamps: Iterable[Any],
    range_hours: float,
    *,
    tz: str = canon.DEFAULT_TZ,
) -> List[str]:
    """
    Render epoch-second timestamps as axis labels for a range:
      - <= 24h: 'HH:MM'
      - <= 7d: 'DD/MM HH:00'
      - <= 30d: 'DD/MM'
      - longer: month abbreviation ('Jan')

    Entries that are not usable timestamps come back as their raw text.
    """
    raw = list(timestamps)
    if not raw:
        return []

    secs = np.array([utils.as_number(v) for v in raw], dtype=float)
    ok = np.isfinite(secs) & (np.abs(secs) < _MAX_EPOCH_S)

    out = [_raw_label(v) for v in raw]
    if ok.any():
        idx = pd.to_datetime(np.floor(secs[ok]).astype(np.int64), unit="s", utc=True)
        idx = pd.DatetimeIndex(idx).tz_convert(ZoneInfo(tz))
        rendered = _render(idx, label_band(range_hours))
        for pos, label in zip(np.flatnonzero(ok), rendered):
            out[pos] = label
    return out


def format_label(raw: Any, range_hours: float, *, tz: str = canon.DEFAULT_TZ) -> str:
    """Single-label form of format_labels."""
    return format_labels([raw], range_hours, tz=tz)[0]
