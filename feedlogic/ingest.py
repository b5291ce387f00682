from __future__ import annotations
import json
import logging
import math
from collections.abc import Mapping
from typing import Any, List, Optional, Tuple

import numpy as np

from . import canon, utils, validate
from .types import Feed, SeriesFrame

logger = logging.getLogger(__name__)

RawPair = Tuple[Any, Any]


def _decode(payload: Any) -> Any:
    # Text bodies (e.g. a proxy envelope's 'contents') arrive undecoded
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        try:
            return json.loads(payload)
        except ValueError:
            return None
    return payload


def _from_record(item: Mapping) -> Optional[RawPair]:
    keys = {str(k).lower(): k for k in item}
    tkey = next((keys[k] for k in canon.COMMON_TIMESTAMP_NAMES if k in keys), None)
    vkey = next((keys[k] for k in canon.COMMON_VALUE_NAMES if k in keys), None)
    if tkey is None or vkey is None:
        return None
    return item[tkey], item[vkey]


def _pairs(items: Any) -> List[RawPair]:
    out: List[RawPair] = []
    for item in items:
        if isinstance(item, (list, tuple)) and len(item) >= 2:
            out.append((item[0], item[1]))
        elif isinstance(item, Mapping):
            pair = _from_record(item)
            if pair is not None:
                out.append(pair)
    return out


def _raw_pairs(payload: Any) -> List[RawPair]:
    """
    Flatten the accepted payload shapes into raw (timestamp, value) pairs:
      - [[ts, value], ...] (or record dicts)
      - {"data": [[ts, value], ...]}
      - {"<ts>": value, ...}
    """
    data = _decode(payload)
    if isinstance(data, Mapping):
        inner = data.get("data")
        if isinstance(inner, (list, tuple)):
            return _pairs(inner)
        return list(data.items())
    if isinstance(data, (list, tuple)):
        return _pairs(data)
    return []


def _normalise_timestamps(ts: np.ndarray) -> np.ndarray:
    ts = np.where(np.abs(ts) >= canon.MS_TIMESTAMP_THRESHOLD, ts / 1000.0, ts)
    return np.floor(ts)


def parse_payload(payload: Any) -> SeriesFrame:
    """
    Parse an upstream series payload and normalise to a SeriesFrame:
      - index: int64 epoch seconds 'timestamp', sorted ascending
      - column: value (finite float)

    Entries with a non-numeric timestamp or value are dropped. Never raises
    for malformed input; the worst case is an empty frame.
    """
    pairs = _raw_pairs(payload)
    if not pairs:
        return utils.empty_series()

    ts = np.array([utils.as_number(t) for t, _ in pairs], dtype=float)
    vals = np.array([utils.as_number(v) for _, v in pairs], dtype=float)
    ts = _normalise_timestamps(ts)

    # Out-of-range epochs would wrap on the int64 cast
    ok = np.isfinite(ts) & np.isfinite(vals) & (np.abs(ts) < 2**62)
    dropped = int((~ok).sum())
    if dropped:
        logger.debug("Dropped %d of %d non-numeric samples", dropped, len(pairs))

    df = utils.build_series_frame(ts[ok].astype(np.int64), vals[ok])
    validate.assert_series(df)
    return df


def parse_value(payload: Any, *, decimals: int = 2) -> Optional[float]:
    """Scalar live value, rounded; None when not a finite number."""
    data = _decode(payload)
    if isinstance(data, Mapping):
        data = data.get("value")
    value = utils.as_number(data)
    if not math.isfinite(value):
        return None
    return round(value, decimals)


def parse_feeds(payload: Any) -> List[Feed]:
    """Feed list payload -> Feed models. Entries without an id are skipped."""
    data = _decode(payload)
    if isinstance(data, Mapping):
        data = data.get("data", data.get("feeds"))
    if not isinstance(data, (list, tuple)):
        return []

    feeds: List[Feed] = []
    for item in data:
        if not isinstance(item, Mapping):
            continue
        feed_id = item.get("id")
        if feed_id is None or isinstance(feed_id, bool) or str(feed_id).strip() == "":
            continue
        feeds.append(
            Feed(
                id=str(feed_id).strip(),
                name=str(item.get("name") or ""),
                tag=str(item.get("tag") or ""),
                value=parse_value(item.get("value")),
            )
        )
    return feeds
