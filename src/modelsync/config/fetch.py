"""Defaults for concurrent catalog fetching."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_INITIAL_BATCH_SIZE = 5
MIN_BATCH_SIZE = 2
MAX_BATCH_SIZE = 8
DEFAULT_BATCH_DELAY_SECONDS = 0.5
DEFAULT_METRICS_WINDOW = 50
DEFAULT_PREFETCH_COUNT = 3
DEFAULT_PREFETCH_DELAY_SECONDS = 0.1
BATCH_TIMEOUT_GRACE_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class FetchConfig:
    """Fetch tuning; ``batch_timeout_seconds=None`` derives the bound from the bulk retry policy."""

    initial_batch_size: int = DEFAULT_INITIAL_BATCH_SIZE
    min_batch_size: int = MIN_BATCH_SIZE
    max_batch_size: int = MAX_BATCH_SIZE
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS
    batch_timeout_seconds: float | None = None
    metrics_window: int = DEFAULT_METRICS_WINDOW
    bulk_attempts: int = 1
    retry_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    jitter_seconds: float = 1.0
    base_timeout_seconds: float = 15.0
    prefetch_count: int = DEFAULT_PREFETCH_COUNT
    prefetch_delay_seconds: float = DEFAULT_PREFETCH_DELAY_SECONDS


def get_fetch_config() -> FetchConfig:
    return FetchConfig()
