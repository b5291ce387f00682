"""
Request pipeline from raw feed fetches to chart-ready results.

Per series request:

    CHECK_CACHE -> hit: return cached payload
                -> miss: FETCHING -> PARSING -> AGGREGATING -> DOWNSAMPLING
                         -> FORMATTING -> CACHING -> DONE

A failed fetch falls back to the last good payload for the key, even if
expired or already swept, and only then to an empty result. For one key the
most recently issued request wins the cache, whatever order the fetches
complete in.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from . import canon, downsample, formats, ingest, summary, utils
from .cache import ExpiringCache
from .config import PipelineConfig, default_config
from .exceptions import ConfigError, FetchFailed, require
from .types import CacheEntry, ChartData, Feed, ProcessedResult, SeriesFrame, Stats

logger = logging.getLogger(__name__)

FetchRawSeries = Callable[[str, int, int, int], Awaitable[Any]]
FetchCurrentValue = Callable[[str], Awaitable[Any]]
FetchFeeds = Callable[[], Awaitable[Any]]


@dataclass
class _Ticket:
    seq: int
    issued_at_ms: int
    task: Optional[asyncio.Task] = None
    superseded: bool = False


class SeriesPipeline:
    def __init__(
        self,
        fetch_raw_series: FetchRawSeries,
        *,
        fetch_current_value: Optional[FetchCurrentValue] = None,
        fetch_feeds: Optional[FetchFeeds] = None,
        cache: Optional[ExpiringCache] = None,
        config: Optional[PipelineConfig] = None,
        clock: Optional[utils.Clock] = None,
        profile_id: str = canon.DEFAULT_PROFILE,
    ):
        self.config = config or default_config()
        self._clock = clock or utils.now_ms
        self.cache: ExpiringCache = cache or ExpiringCache(
            self.config.ttl.series_ms, clock=self._clock
        )
        self.profile_id = profile_id

        self._fetch_raw_series = fetch_raw_series
        self._fetch_current_value = fetch_current_value
        self._fetch_feeds = fetch_feeds

        self._seq = itertools.count(1)
        self._inflight: Dict[str, _Ticket] = {}
        self._latest_seq: Dict[str, int] = {}
        # Last successful entry per (profile, key); outlives cache sweeps
        self._last_good: Dict[Tuple[str, str], CacheEntry] = {}

    async def __aenter__(self) -> "SeriesPipeline":
        self.cache.start_sweeper()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.cache.stop_sweeper()

    def now(self) -> int:
        return self._clock()

    ## Profiles
    def use_profile(self, profile_id: str) -> None:
        """Switch the namespace future reads and writes go to."""
        self.profile_id = profile_id

    def clear_cache(self, profile_id: Optional[str] = None) -> int:
        """Drop cached data for a profile (this pipeline's by default)."""
        namespace = profile_id or self.profile_id
        for slot in [s for s in self._last_good if s[0] == namespace]:
            del self._last_good[slot]
        return self.cache.clear(namespace)

    ## Processing
    def target_points(self, range_hours: float, chart_width_px: Optional[int] = None) -> int:
        display = self.config.display
        return utils.target_point_count(
            chart_width_px or display.chart_width_px,
            range_hours,
            pixels_per_point=display.pixels_per_point,
            long_range_hours=display.long_range_hours,
            long_range_factor=display.long_range_factor,
        )

    def _chart(self, shown: SeriesFrame, stats: Stats, range_hours: float) -> ProcessedResult:
        labels = formats.format_labels(shown.index, range_hours, tz=self.config.display.tz)
        return ProcessedResult(
            chart_data=ChartData(
                labels=labels,
                values=shown[canon.VALUE_COL].tolist(),
                timestamps=[int(t) for t in shown.index],
            ),
            stats=stats,
            status="ok",
        )

    def _stages(self, raw: Any, range_hours: float, target: int):
        """
        Parse -> aggregate -> downsample -> format as a generator.

        Yields between stages; the result comes back as the generator's
        return value. Sync and async callers drive the same sequence.
        """
        series = ingest.parse_payload(raw)
        yield len(series)
        stats = summary.aggregate(series)
        if series.empty:
            return ProcessedResult(stats=stats, status="no_data")
        yield len(series)
        shown = downsample.downsample(series, target)
        yield len(shown)
        return self._chart(shown, stats, range_hours)

    def process(self, raw: Any, range_hours: float, *, target: Optional[int] = None) -> ProcessedResult:
        """Synchronous parse -> aggregate -> downsample -> format of one payload."""
        target = self.target_points(range_hours) if target is None else target
        stages = self._stages(raw, range_hours, target)
        while True:
            try:
                next(stages)
            except StopIteration as done:
                return done.value

    async def _process(self, raw: Any, range_hours: float, target: int) -> ProcessedResult:
        # Same stages as process(), yielding to the loop between them on big series
        stages = self._stages(raw, range_hours, target)
        big: Optional[bool] = None
        while True:
            try:
                size = next(stages)
            except StopIteration as done:
                return done.value
            if big is None:
                big = size >= self.config.display.yield_threshold
                if big:
                    logger.debug("Processing %d samples with cooperative yields", size)
            if big:
                await asyncio.sleep(0)

    ## Request bookkeeping
    def _issue(self, key: str) -> _Ticket:
        ticket = _Ticket(seq=next(self._seq), issued_at_ms=self.now())
        previous = self._inflight.get(key)
        if previous is not None and previous.task is not None and not previous.task.done():
            previous.superseded = True
            if self.config.cancel_superseded:
                logger.debug("Cancelling superseded fetch for %s", key)
                previous.task.cancel()
        self._inflight[key] = ticket
        self._latest_seq[key] = ticket.seq
        return ticket

    def _release(self, key: str, ticket: _Ticket) -> None:
        if self._inflight.get(key) is ticket:
            del self._inflight[key]

    def _is_superseded(self, key: str, ticket: _Ticket) -> bool:
        return ticket.superseded or self._latest_seq.get(key, ticket.seq) != ticket.seq

    def _store(self, key: str, payload: Any, *, fetched_at_ms: int, ttl_ms: int) -> bool:
        stored = self.cache.set_if_newer(
            key,
            payload,
            fetched_at_ms=fetched_at_ms,
            namespace=self.profile_id,
            ttl_ms=ttl_ms,
        )
        if stored:
            self._last_good[(self.profile_id, key)] = self.cache.get_stale(
                key, namespace=self.profile_id
            )
        return stored

    def _stale_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self.cache.get_stale(key, namespace=self.profile_id)
        if entry is None:
            entry = self._last_good.get((self.profile_id, key))
        return entry

    def _fallback(self, key: str) -> ProcessedResult:
        entry = self._stale_entry(key)
        if entry is None:
            logger.warning("No cached data for %s; returning empty result", key)
            return ProcessedResult.empty("error")
        fresh = entry.is_fresh(self.now())
        if not fresh:
            logger.warning(
                "Serving stale data for %s (age %d ms)", key, entry.age_ms(self.now())
            )
        return entry.payload.model_copy(
            update={
                "status": entry.payload.status if fresh else "stale",
                "from_cache": True,
                "fetched_at_ms": entry.fetched_at_ms,
            }
        )

    ## Series
    async def load(
        self,
        feed_id: str,
        time_range: utils.RangeLike = "day",
        zoom: float = 1.0,
        *,
        chart_width_px: Optional[int] = None,
    ) -> ProcessedResult:
        """
        Chart-ready data for one feed over a range.

        Always resolves to a ProcessedResult for fetch failures; see
        ProcessedResult.status for which variant came back.
        """
        rng = utils.resolve_range(time_range)
        interval = utils.effective_interval(rng.base_interval_seconds, zoom)
        target = self.target_points(rng.hours, chart_width_px)
        # Charts are cached downsampled, so the point budget is part of the key
        key = utils.cache_key(feed_id, rng.hours, interval, points=target)

        hit = self.cache.get(key, namespace=self.profile_id)
        if hit is not None:
            logger.debug("Cache hit for %s", key)
            return hit.payload.model_copy(
                update={"from_cache": True, "fetched_at_ms": hit.fetched_at_ms}
            )

        ticket = self._issue(key)
        end_ms = ticket.issued_at_ms
        start_ms = end_ms - rng.window_seconds * 1000
        ticket.task = asyncio.ensure_future(
            self.config.retry.call(
                self._fetch_raw_series,
                feed_id,
                start_ms,
                end_ms,
                interval,
                timeout_s=self.config.timeout_for(rng.hours),
                label=f"fetch_raw_series({key})",
            )
        )
        try:
            raw = await ticket.task
        except asyncio.CancelledError:
            if ticket.superseded:
                logger.info("Request for %s superseded before completion", key)
                return ProcessedResult.empty("superseded")
            raise
        except FetchFailed as exc:
            if self._is_superseded(key, ticket):
                return ProcessedResult.empty("superseded")
            logger.warning("Fetch for %s failed: %s", key, exc)
            return self._fallback(key)
        finally:
            self._release(key, ticket)

        result = await self._process(raw, rng.hours, target)
        result = result.model_copy(update={"fetched_at_ms": ticket.issued_at_ms})

        if self._is_superseded(key, ticket):
            logger.info("Discarding superseded result for %s", key)
            return result.model_copy(update={"status": "superseded"})
        stored = self._store(
            key,
            result,
            fetched_at_ms=ticket.issued_at_ms,
            ttl_ms=self.config.ttl.series_ms,
        )
        if not stored:
            return result.model_copy(update={"status": "superseded"})
        return result

    async def load_many(
        self,
        feed_ids: Iterable[str],
        time_range: utils.RangeLike = "day",
        zoom: float = 1.0,
        *,
        chart_width_px: Optional[int] = None,
    ) -> Dict[str, ProcessedResult]:
        ids = list(feed_ids)
        results = await asyncio.gather(
            *(self.load(f, time_range, zoom, chart_width_px=chart_width_px) for f in ids)
        )
        return dict(zip(ids, results))

    ## Live values
    async def current_value(self, feed_id: str) -> float:
        require(
            self._fetch_current_value is not None,
            "No fetch_current_value collaborator configured.",
            ConfigError,
        )
        key = utils.live_key(feed_id)
        hit = self.cache.get(key, namespace=self.profile_id)
        if hit is not None:
            return hit.payload

        issued = self.now()
        try:
            raw = await self.config.live_retry.call(
                self._fetch_current_value,
                feed_id,
                timeout_s=self.config.live_timeout_s,
                label=f"fetch_current_value({feed_id})",
            )
        except FetchFailed as exc:
            stale = self._stale_entry(key)
            logger.warning(
                "Live value for %s unavailable (%s); using %s",
                feed_id,
                exc,
                "stale value" if stale is not None else "0.0",
            )
            return stale.payload if stale is not None else 0.0

        value = ingest.parse_value(raw)
        if value is None:
            logger.warning("Non-numeric live value for %s: %r", feed_id, raw)
            value = 0.0
        self._store(key, value, fetched_at_ms=issued, ttl_ms=self.config.ttl.live_value_ms)
        return value

    async def current_values(self, feed_ids: Iterable[str]) -> Dict[str, float]:
        ids = list(feed_ids)
        values = await asyncio.gather(*(self.current_value(f) for f in ids))
        return dict(zip(ids, values))

    ## Feed list
    async def feeds(self) -> List[Feed]:
        require(self._fetch_feeds is not None, "No fetch_feeds collaborator configured.", ConfigError)
        key = utils.feed_list_key()
        hit = self.cache.get(key, namespace=self.profile_id)
        if hit is not None:
            return list(hit.payload)

        issued = self.now()
        try:
            raw = await self.config.retry.call(
                self._fetch_feeds, timeout_s=self.config.timeout_s, label="fetch_feeds"
            )
        except FetchFailed as exc:
            stale = self._stale_entry(key)
            logger.warning("Feed list unavailable: %s", exc)
            return list(stale.payload) if stale is not None else []

        feeds = ingest.parse_feeds(raw)
        self._store(key, tuple(feeds), fetched_at_ms=issued, ttl_ms=self.config.ttl.feed_list_ms)
        return feeds
