"""Error taxonomy for candle aggregation.

Segment-level failures (`SourceUnavailable`, `MalformedUpstreamData`) are
recovered by the aggregator through fallback providers. `InvalidRange` and
`AllSourcesUnavailable` reach the caller.
"""

from __future__ import annotations

from typing import Any, Sequence

from core.market_data.types import ProviderId


class ChartDataError(Exception):
    """Base exception for candle aggregation errors."""


class MalformedUpstreamData(ChartDataError):
    """A provider returned a record its adapter cannot parse. Never retried."""

    def __init__(self, provider_id: ProviderId, record: Any, reason: str) -> None:
        self.provider_id = provider_id
        self.record = record
        self.reason = reason
        super().__init__(f"{provider_id.value}: malformed kline ({reason}): {record!r:.200}")


class SourceUnavailable(ChartDataError):
    """Network, timeout, HTTP or envelope failure from a source client."""

    def __init__(
        self,
        provider_id: ProviderId,
        cause: str,
        *,
        status_code: int | None = None,
        is_transient: bool = True,
    ) -> None:
        self.provider_id = provider_id
        self.cause = cause
        self.status_code = status_code
        self.is_transient = is_transient
        super().__init__(f"{provider_id.value} unavailable: {cause}")


class InvalidRange(ChartDataError, ValueError):
    """Caller contract violation: start must be strictly before end."""

    def __init__(self, start_ms: int, end_ms: int) -> None:
        self.start_ms = start_ms
        self.end_ms = end_ms
        super().__init__(f"start ({start_ms}) must be before end ({end_ms})")


class AllSourcesUnavailable(ChartDataError):
    """Every planned segment failed; nothing could be retrieved."""

    def __init__(self, errors: Sequence[Exception]) -> None:
        self.errors = tuple(errors)
        detail = "; ".join(str(err) for err in self.errors) or "no attempts made"
        super().__init__(f"all candle sources failed: {detail}")


def classify_status(provider_id: ProviderId, status_code: int, message: str) -> SourceUnavailable:
    """Map an HTTP error status to a `SourceUnavailable`.

    The transient flag only affects logging; the aggregator falls back either way.
    """
    if status_code == 429 or 500 <= status_code < 600:
        return SourceUnavailable(provider_id, message, status_code=status_code, is_transient=True)
    return SourceUnavailable(provider_id, message, status_code=status_code, is_transient=False)
