from __future__ import annotations
import numpy as np
import pandas as pd

from . import canon, exceptions


def assert_series(df: pd.DataFrame) -> None:
    if df.index.name != canon.INDEX_NAME:
        raise exceptions.SeriesError(f"Index must be '{canon.INDEX_NAME}'.")
    if len(df.index) and not pd.api.types.is_integer_dtype(df.index.dtype):
        raise exceptions.SeriesError("Index must hold integer epoch seconds.")
    if canon.VALUE_COL not in df.columns:
        raise exceptions.SeriesError(f"Missing required column '{canon.VALUE_COL}'.")
    if not df.index.is_monotonic_increasing:
        raise exceptions.SeriesError("Index must be sorted ascending.")
    values = df[canon.VALUE_COL].to_numpy(dtype=float)
    if not np.isfinite(values).all():
        raise exceptions.SeriesError("Non-finite values present; parse before use.")
