"""Coverage policy: which provider serves which slice of a requested range.

Pure functions over declared `ProviderWindow` data. No network, no clock
(the caller passes `now_ms`).

Walk order is most-recent `earliest_available` first, ties broken by
reliability. Each provider claims the tail of what is still uncovered, so the
resulting segments partition the covered part of the range without overlap.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence

from core.market_data.errors import InvalidRange
from core.market_data.types import (
    CoveragePlan,
    ProviderId,
    ProviderWindow,
    ReliabilityTier,
    Segment,
    TimeRange,
)


def _utc_ms(year: int, month: int, day: int) -> int:
    return int(datetime(year, month, day, tzinfo=timezone.utc).timestamp() * 1000)


DEFAULT_PROVIDER_WINDOWS: tuple[ProviderWindow, ...] = (
    ProviderWindow(
        provider_id=ProviderId.PACIFICA,
        earliest_available_ms=_utc_ms(2025, 6, 1),
        reliability=ReliabilityTier.PRIMARY,
        name="Pacifica",
        description="Primary source for recent data",
    ),
    ProviderWindow(
        provider_id=ProviderId.BINANCE,
        earliest_available_ms=_utc_ms(2019, 9, 1),
        reliability=ReliabilityTier.SECONDARY,
        name="Binance Futures",
        description="Secondary source for historical data",
    ),
    ProviderWindow(
        provider_id=ProviderId.BYBIT,
        earliest_available_ms=_utc_ms(2020, 1, 1),
        reliability=ReliabilityTier.FALLBACK,
        name="Bybit",
        description="Fallback source for historical data",
    ),
)


def walk_order(windows: Iterable[ProviderWindow]) -> list[ProviderWindow]:
    """Providers in preference order: newest coverage first, then most reliable."""
    return sorted(windows, key=lambda w: (-w.earliest_available_ms, w.reliability))


def plan_sources(
    start_ms: int,
    end_ms: int,
    windows: Sequence[ProviderWindow],
    *,
    now_ms: int | None = None,
) -> CoveragePlan:
    """Partition ``[start_ms, end_ms)`` into provider-owned segments.

    Segments come back in ascending time order. Whatever no provider covers is
    reported in ``unavailable``. A range starting after ``now_ms`` has no
    coverage at all and yields an empty plan.

    Raises:
        InvalidRange: if ``start_ms >= end_ms``
    """
    if start_ms >= end_ms:
        raise InvalidRange(start_ms, end_ms)
    if now_ms is not None and start_ms > now_ms:
        return CoveragePlan(unavailable=(TimeRange(start_ms, end_ms),))

    claimed: list[Segment] = []
    remaining_end = end_ms
    for window in walk_order(windows):
        if remaining_end <= start_ms:
            break
        if window.earliest_available_ms >= remaining_end:
            continue
        segment_start = max(start_ms, window.earliest_available_ms)
        claimed.append(Segment(window.provider_id, segment_start, remaining_end))
        remaining_end = segment_start

    unavailable: tuple[TimeRange, ...] = ()
    if remaining_end > start_ms:
        unavailable = (TimeRange(start_ms, remaining_end),)

    claimed.reverse()
    return CoveragePlan(segments=tuple(claimed), unavailable=unavailable)


def fallbacks_for(segment: Segment, windows: Sequence[ProviderWindow]) -> list[Segment]:
    """Older providers that overlap `segment`, in the order they should be tried.

    Each fallback is clipped to the part of the segment its window covers.
    """
    order = walk_order(windows)
    ids = [w.provider_id for w in order]
    if segment.provider_id not in ids:
        return []

    chain: list[Segment] = []
    for window in order[ids.index(segment.provider_id) + 1 :]:
        start = max(segment.range_start, window.earliest_available_ms)
        if start < segment.range_end:
            chain.append(Segment(window.provider_id, start, segment.range_end))
    return chain


def earliest_available_ms(windows: Iterable[ProviderWindow]) -> int | None:
    starts = [w.earliest_available_ms for w in windows]
    return min(starts) if starts else None
