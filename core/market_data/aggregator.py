"""Multi-source candle aggregator.

Strategy (default provider table):
- June 2025+ -> Pacifica (primary, most accurate, lowest latency)
- Older history -> Bybit / Binance by coverage window
- A failed or empty segment falls back to the next-older provider covering it

Segments are fetched concurrently under one overall deadline. Output is
always ordered by open time, never by completion order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, Sequence

from core.market_data.base import CandleSource, interval_ms
from core.market_data.coverage import (
    DEFAULT_PROVIDER_WINDOWS,
    earliest_available_ms,
    fallbacks_for,
    plan_sources,
    walk_order,
)
from core.market_data.errors import (
    AllSourcesUnavailable,
    InvalidRange,
    MalformedUpstreamData,
    SourceUnavailable,
)
from core.market_data.types import (
    AggregationResult,
    CoveragePlan,
    ProviderId,
    ProviderWindow,
    Segment,
    SegmentOutcome,
)
from core.types import Candle, CandleGap

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChartDataAggregator:
    """Stitches candles from several providers into one gap-checked sequence.

    Construct once at startup with the source clients wired in and share the
    instance between requests; it holds no per-request state.
    """

    def __init__(
        self,
        sources: Iterable[CandleSource],
        windows: Sequence[ProviderWindow] = DEFAULT_PROVIDER_WINDOWS,
        *,
        total_timeout_seconds: float = 30.0,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.sources: dict[ProviderId, CandleSource] = {s.provider_id: s for s in sources}
        if not self.sources:
            raise ValueError("at least one candle source is required")
        # Only windows backed by a configured source take part in planning.
        self.windows: tuple[ProviderWindow, ...] = tuple(
            w for w in windows if w.provider_id in self.sources
        )
        if not self.windows:
            raise ValueError("no provider window matches the configured sources")
        self.total_timeout_seconds = total_timeout_seconds
        self._clock = clock
        self._rank = {w.provider_id: i for i, w in enumerate(walk_order(self.windows))}

    async def __aenter__(self) -> "ChartDataAggregator":
        return self

    async def __aexit__(self, *_) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close every source client."""
        for source in self.sources.values():
            await source.aclose()

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    async def get_candles(
        self,
        symbol: str,
        interval: str,
        start_ms: int,
        end_ms: int,
    ) -> list[Candle]:
        """Get candles for ``[start_ms, end_ms)`` from the best source(s).

        Returns an empty list when no provider covers the range.

        Raises:
            InvalidRange: start is not before end
            ValueError: unknown interval
            AllSourcesUnavailable: every planned segment failed
        """
        result = await self.get_candles_report(symbol, interval, start_ms, end_ms)
        return list(result.candles)

    async def get_candles_report(
        self,
        symbol: str,
        interval: str,
        start_ms: int,
        end_ms: int,
    ) -> AggregationResult:
        """Like `get_candles`, but also returns the plan, per-segment outcomes and gaps."""
        if start_ms >= end_ms:
            raise InvalidRange(start_ms, end_ms)
        step_ms = interval_ms(interval)

        plan = plan_sources(start_ms, end_ms, self.windows, now_ms=self._clock())
        for uncovered in plan.unavailable:
            logger.info(
                "No provider covers %s %s [%d, %d)",
                symbol,
                interval,
                uncovered.start_ms,
                uncovered.end_ms,
            )
        if plan.is_empty:
            return AggregationResult(candles=(), plan=plan)

        logger.info(
            "Getting candles for %s %s [%d, %d) from %s",
            symbol,
            interval,
            start_ms,
            end_ms,
            ", ".join(f"{s.provider_id.value}[{s.range_start},{s.range_end})" for s in plan.segments),
        )

        outcomes = await self._fetch_segments(symbol, interval, plan)
        if all(outcome.failed for outcome in outcomes):
            errors = [err for outcome in outcomes for err in outcome.errors]
            logger.error("All sources failed for %s %s [%d, %d)", symbol, interval, start_ms, end_ms)
            raise AllSourcesUnavailable(errors)

        candles = self._merge(outcomes)
        gaps = find_gaps(candles, step_ms, seams=[s.range_start for s in plan.segments[1:]])
        for gap in gaps:
            if gap.at_seam:
                logger.info(
                    "Seam gap in %s %s: %d bars missing between %d and %d",
                    symbol,
                    interval,
                    gap.missing_bars,
                    gap.after_t,
                    gap.before_t,
                )
            else:
                logger.warning(
                    "Internal gap in %s %s: %d bars missing between %d and %d",
                    symbol,
                    interval,
                    gap.missing_bars,
                    gap.after_t,
                    gap.before_t,
                )

        return AggregationResult(
            candles=tuple(candles),
            plan=plan,
            outcomes=tuple(outcomes),
            gaps=tuple(gaps),
        )

    def get_earliest_available_date(self) -> datetime:
        """Earliest date any configured provider has data for."""
        earliest = earliest_available_ms(self.windows)
        return datetime.fromtimestamp(earliest / 1000, tz=timezone.utc)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _fetch_segments(
        self,
        symbol: str,
        interval: str,
        plan: CoveragePlan,
    ) -> list[SegmentOutcome]:
        tasks = [
            asyncio.create_task(
                self._fetch_segment(symbol, interval, segment),
                name=f"candles:{segment.provider_id.value}:{segment.range_start}",
            )
            for segment in plan.segments
        ]
        try:
            await asyncio.wait(tasks, timeout=self.total_timeout_seconds)
        finally:
            # Runs on timeout and on caller cancellation alike; nothing outlives the call.
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: list[SegmentOutcome] = []
        for segment, task in zip(plan.segments, tasks):
            if task.cancelled():
                err = SourceUnavailable(
                    segment.provider_id,
                    f"segment not completed within {self.total_timeout_seconds}s",
                )
                logger.error(
                    "Timed out fetching %s %s [%d, %d) from %s",
                    symbol,
                    interval,
                    segment.range_start,
                    segment.range_end,
                    segment.provider_id.value,
                )
                outcomes.append(SegmentOutcome(segment=segment, errors=(err,)))
            else:
                outcomes.append(task.result())
        return outcomes

    async def _fetch_segment(self, symbol: str, interval: str, segment: Segment) -> SegmentOutcome:
        """Try the segment owner, then each fallback, until one returns candles."""
        errors: list[Exception] = []
        answered_by: ProviderId | None = None

        for attempt in [segment, *fallbacks_for(segment, self.windows)]:
            source = self.sources[attempt.provider_id]
            try:
                candles = await source.fetch_candles(symbol, interval, attempt.range_start, attempt.range_end)
            except (SourceUnavailable, MalformedUpstreamData) as exc:
                errors.append(exc)
                logger.warning(
                    "%s failed for %s %s [%d, %d): %s",
                    attempt.provider_id.value,
                    symbol,
                    interval,
                    attempt.range_start,
                    attempt.range_end,
                    exc,
                )
                continue

            if candles:
                if attempt is not segment:
                    logger.warning(
                        "Segment %s [%d, %d) for %s %s served by fallback %s",
                        segment.provider_id.value,
                        segment.range_start,
                        segment.range_end,
                        symbol,
                        interval,
                        attempt.provider_id.value,
                    )
                return SegmentOutcome(
                    segment=segment,
                    candles=tuple(candles),
                    served_by=attempt.provider_id,
                    errors=tuple(errors),
                )

            if answered_by is None:
                answered_by = attempt.provider_id
            logger.info(
                "%s returned no candles for %s %s [%d, %d)",
                attempt.provider_id.value,
                symbol,
                interval,
                attempt.range_start,
                attempt.range_end,
            )

        if answered_by is None:
            logger.error(
                "All providers failed for %s %s [%d, %d); segment left empty",
                symbol,
                interval,
                segment.range_start,
                segment.range_end,
            )
        return SegmentOutcome(segment=segment, served_by=answered_by, errors=tuple(errors))

    def _merge(self, outcomes: Sequence[SegmentOutcome]) -> list[Candle]:
        """Concatenate segments; on a shared timestamp the more preferred provider wins."""
        by_time: dict[int, Candle] = {}
        served = [o for o in outcomes if o.served_by is not None and o.candles]
        # Least preferred first so preferred providers overwrite at seams.
        for outcome in sorted(served, key=lambda o: self._rank[o.served_by], reverse=True):
            for candle in outcome.candles:
                by_time[candle.t] = candle
        return [by_time[t] for t in sorted(by_time)]


def find_gaps(candles: Sequence[Candle], step_ms: int, *, seams: Iterable[int] = ()) -> list[CandleGap]:
    """Report every break in uniform bar spacing.

    A gap spanning a segment boundary is flagged ``at_seam``.
    """
    seam_list = sorted(seams)
    gaps: list[CandleGap] = []
    for prev, cur in zip(candles, candles[1:]):
        delta = cur.t - prev.t
        if delta == step_ms:
            continue
        gaps.append(
            CandleGap(
                after_t=prev.t,
                before_t=cur.t,
                missing_bars=max(0, delta // step_ms - 1),
                at_seam=any(prev.t < seam <= cur.t for seam in seam_list),
            )
        )
    return gaps
