from __future__ import annotations
from typing import Generic, List, Literal, Optional, TypeVar
from dataclasses import dataclass

import pandas as pd
from pydantic import BaseModel, model_validator

from . import canon
from .exceptions import RangeError, require

T = TypeVar("T")

ResultStatus = Literal["ok", "no_data", "stale", "error", "superseded"]


# Series DataFrame
class SeriesFrame(pd.DataFrame):
    """
    Ordered (timestamp, value) samples for one feed.

    Expected:
      - int64 index named 'timestamp' (epoch seconds), non-decreasing
      - Column: ['value'] (finite float)
    """

    @property
    def _constructor(self):
        return SeriesFrame

    # Convenience typed accessor
    @property
    def value(self) -> pd.Series:
        return self[canon.VALUE_COL]


@dataclass(frozen=True)
class TimeRangeSpec:
    window_seconds: int
    base_interval_seconds: int
    label: str

    def __post_init__(self):
        require(self.window_seconds > 0, "Range window must be positive.", RangeError)
        require(
            self.base_interval_seconds > 0,
            "Range base interval must be positive.",
            RangeError,
        )

    @property
    def hours(self) -> float:
        return self.window_seconds / 3600

    @classmethod
    def from_hours(cls, hours: float, label: Optional[str] = None) -> "TimeRangeSpec":
        """Ad hoc range using the default interval ladder for its length."""
        require(hours > 0, f"Range hours must be positive, got {hours}.", RangeError)
        interval = canon.DEFAULT_INTERVAL_S
        for above_h, step in canon.INTERVAL_LADDER:
            if hours > above_h:
                interval = step
                break
        return cls(
            window_seconds=int(round(hours * 3600)),
            base_interval_seconds=interval,
            label=label or f"{hours:g}H",
        )


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    key: str
    payload: T
    fetched_at_ms: int
    ttl_ms: int

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.fetched_at_ms

    def is_fresh(self, now_ms: int) -> bool:
        return self.age_ms(now_ms) < self.ttl_ms


## Chart payloads
class ChartData(BaseModel):
    labels: List[str] = []
    values: List[float] = []
    timestamps: List[int] = []
    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _aligned(self) -> "ChartData":
        if not (len(self.labels) == len(self.values) == len(self.timestamps)):
            raise ValueError(
                f"labels/values/timestamps lengths differ: "
                f"{len(self.labels)}/{len(self.values)}/{len(self.timestamps)}"
            )
        return self


class Stats(BaseModel):
    mean: float = 0.0
    min: float = 0.0
    max: float = 0.0
    total: float = 0.0
    model_config = {"frozen": True}


class ProcessedResult(BaseModel):
    chart_data: ChartData = ChartData()
    stats: Stats = Stats()
    status: ResultStatus = "ok"
    from_cache: bool = False
    fetched_at_ms: Optional[int] = None
    model_config = {"frozen": True}

    @classmethod
    def empty(cls, status: ResultStatus = "no_data") -> "ProcessedResult":
        return cls(status=status)

    @property
    def is_empty(self) -> bool:
        return not self.chart_data.values


class Feed(BaseModel):
    id: str
    name: str = ""
    tag: str = ""
    value: Optional[float] = None
    model_config = {"frozen": True}
