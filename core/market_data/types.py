"""Market data types: provider identities, coverage plans and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum

from core.types import Candle, CandleGap


# ---------------------------------------------------------------------------
# Provider identity
# ---------------------------------------------------------------------------


class ProviderId(str, Enum):
    """Supported upstream market data providers."""

    PACIFICA = "pacifica"  # Primary, recent data
    BINANCE = "binance"  # USD-M futures history
    BYBIT = "bybit"  # Linear perpetuals history


class ReliabilityTier(IntEnum):
    """Lower value means more trusted."""

    PRIMARY = 1
    SECONDARY = 2
    FALLBACK = 3


@dataclass(frozen=True)
class ProviderWindow:
    """Static coverage fact for one provider."""

    provider_id: ProviderId
    earliest_available_ms: int
    reliability: ReliabilityTier
    name: str = ""
    description: str = ""


# ---------------------------------------------------------------------------
# Coverage plan
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeRange:
    """Half-open millisecond range ``[start_ms, end_ms)``."""

    start_ms: int
    end_ms: int

    def contains(self, t: int) -> bool:
        return self.start_ms <= t < self.end_ms


@dataclass(frozen=True)
class Segment:
    """A contiguous sub-range owned by exactly one provider."""

    provider_id: ProviderId
    range_start: int
    range_end: int

    @property
    def range(self) -> TimeRange:
        return TimeRange(self.range_start, self.range_end)


@dataclass(frozen=True)
class CoveragePlan:
    segments: tuple[Segment, ...] = ()
    unavailable: tuple[TimeRange, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.segments


# ---------------------------------------------------------------------------
# Aggregation result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SegmentOutcome:
    """What happened to one planned segment."""

    segment: Segment
    candles: tuple[Candle, ...] = ()
    served_by: ProviderId | None = None
    errors: tuple[Exception, ...] = ()

    @property
    def failed(self) -> bool:
        """True when every attempt raised and nothing answered cleanly."""
        return self.served_by is None and bool(self.errors)


@dataclass(frozen=True)
class AggregationResult:
    candles: tuple[Candle, ...]
    plan: CoveragePlan
    outcomes: tuple[SegmentOutcome, ...] = ()
    gaps: tuple[CandleGap, ...] = field(default_factory=tuple)

    @property
    def missing(self) -> tuple[Segment, ...]:
        return tuple(o.segment for o in self.outcomes if not o.candles)

    @property
    def errors(self) -> tuple[Exception, ...]:
        return tuple(err for o in self.outcomes for err in o.errors)
