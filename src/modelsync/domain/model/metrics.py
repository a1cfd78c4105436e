"""Per-request fetch metrics."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FetchMetric:
    channel_id: int
    duration_ms: float
    result_count: int
    success: bool
    timestamp: float
