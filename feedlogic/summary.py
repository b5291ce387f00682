from __future__ import annotations
from typing import Iterable, Union

import numpy as np
import pandas as pd

from . import canon, utils
from .types import Stats


def _finite_values(series: Union[pd.DataFrame, pd.Series, Iterable[float]]) -> np.ndarray:
    if isinstance(series, pd.DataFrame):
        series = series[canon.VALUE_COL]
    dtype = getattr(series, "dtype", None)
    if (
        isinstance(series, pd.Series)
        and pd.api.types.is_numeric_dtype(dtype)
        and not pd.api.types.is_bool_dtype(dtype)
    ):
        arr = series.to_numpy(dtype=float)
    else:
        arr = np.array([utils.as_number(v) for v in series], dtype=float)
    return arr[np.isfinite(arr)]


def aggregate(series: Union[pd.DataFrame, pd.Series, Iterable[float]]) -> Stats:
    """
    Mean/min/max/total over the finite values of a series.

    Accepts a SeriesFrame, a value Series or any iterable of numbers.
    A non-finite value is left out of all four figures; an empty (or
    all-invalid) input gives all zeros, never NaN or inf.
    """
    arr = _finite_values(series)
    if arr.size == 0:
        return Stats()

    total = float(arr.sum())
    return Stats(
        mean=total / arr.size,
        min=float(arr.min()),
        max=float(arr.max()),
        total=total,
    )
