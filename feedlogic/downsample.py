"""Largest-Triangle-Three-Buckets (LTTB) downsampling for chart display.

Keeps the samples whose removal would most change the drawn line, so short
spikes survive where stride decimation would alias them away. The x axis is
the real timestamp, so irregular sampling keeps its geometry.
"""

from __future__ import annotations
import logging

import numpy as np

from . import canon
from .exceptions import DownsampleError, require
from .types import SeriesFrame

logger = logging.getLogger(__name__)


def lttb_indices(x: np.ndarray, y: np.ndarray, threshold: int) -> np.ndarray:
    """
    Positions of the samples LTTB keeps, ascending.

    Expects len(x) > threshold >= 2. The first and last positions are always
    part of the result.
    """
    n = len(x)
    keep = np.empty(threshold, dtype=np.int64)
    keep[0] = 0
    keep[-1] = n - 1
    if threshold == 2:
        return keep

    # Interior buckets share the points between the two anchors
    bucket_size = (n - 2) / (threshold - 2)
    a = 0

    for i in range(threshold - 2):
        start = int(i * bucket_size) + 1
        end = min(int((i + 1) * bucket_size) + 1, n - 1)

        # Representative of the next bucket: its mean, or the last sample
        # when the bucket runs past the end of the series
        next_start = end
        next_end = min(int((i + 2) * bucket_size) + 1, n)
        if next_end > next_start:
            avg_x = x[next_start:next_end].mean()
            avg_y = y[next_start:next_end].mean()
        else:
            avg_x = x[n - 1]
            avg_y = y[n - 1]

        cand_x = x[start:end]
        cand_y = y[start:end]
        area = np.abs(
            (x[a] - avg_x) * (cand_y - y[a]) - (x[a] - cand_x) * (avg_y - y[a])
        )
        a = start + int(np.argmax(area))
        keep[i + 1] = a

    return keep


def downsample(series: SeriesFrame, target: int) -> SeriesFrame:
    """
    Reduce a series to at most ``target`` samples with LTTB.

    - series already within budget (or of length <= 2) is returned as is
    - first and last samples are always kept verbatim
    - target < 0, or target < 2 on a longer series, is a caller bug
    """
    require(target >= 0, f"Target point count must be >= 0, got {target}.", DownsampleError)
    n = len(series)
    if n <= target or n <= canon.MIN_DOWNSAMPLE_LENGTH:
        return series
    require(
        target >= 2,
        f"Target point count {target} cannot hold both end samples.",
        DownsampleError,
    )

    x = series.index.to_numpy(dtype=float)
    y = series[canon.VALUE_COL].to_numpy(dtype=float)
    keep = lttb_indices(x, y, target)
    logger.debug("LTTB reduced %d samples to %d", n, len(keep))
    return series.iloc[keep]
