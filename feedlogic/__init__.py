import logging

from . import (
    canon,
    exceptions,
    types,
    utils,
    validate,
    ingest,
    downsample,
    summary,
    formats,
    retry,
    cache,
    config,
    pipeline,
)
from .cache import ExpiringCache
from .config import PipelineConfig, default_config
from .pipeline import SeriesPipeline
from .types import ChartData, Feed, ProcessedResult, SeriesFrame, Stats, TimeRangeSpec

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "canon",
    "exceptions",
    "types",
    "utils",
    "validate",
    "ingest",
    "downsample",
    "summary",
    "formats",
    "retry",
    "cache",
    "config",
    "pipeline",
    "ExpiringCache",
    "PipelineConfig",
    "default_config",
    "SeriesPipeline",
    "ChartData",
    "Feed",
    "ProcessedResult",
    "SeriesFrame",
    "Stats",
    "TimeRangeSpec",
]
