"""Retry and batch-size policies for catalog fetching."""

from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from modelsync.config.fetch import (
    DEFAULT_INITIAL_BATCH_SIZE,
    DEFAULT_METRICS_WINDOW,
    MAX_BATCH_SIZE,
    MIN_BATCH_SIZE,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from modelsync.config.fetch import FetchConfig
    from modelsync.domain.model import FetchMetric


@dataclass(frozen=True, slots=True)
class FetchRetryPolicy:
    """Attempts, exponential backoff with jitter, and a growing per-attempt timeout."""

    max_attempts: int = 1
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: float = 1.0
    base_timeout: float = 15.0
    timeout_growth: float = 1.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def backoff(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """Seconds to wait after failed ``attempt`` (1-based) before the next one."""

        delay = min(self.base_delay * 2 ** (attempt - 1), self.max_delay)
        return delay + rand() * self.jitter

    def timeout(self, attempt: int) -> float:
        return self.base_timeout * self.timeout_growth ** (attempt - 1)

    def worst_case_seconds(self) -> float:
        """Longest one channel can take: every attempt timing out plus the largest backoffs."""

        attempts = range(1, self.max_attempts + 1)
        waits = sum(self.timeout(attempt) for attempt in attempts)
        pauses = sum(
            min(self.base_delay * 2 ** (attempt - 1), self.max_delay) + self.jitter
            for attempt in range(1, self.max_attempts)
        )
        return waits + pauses

    @classmethod
    def from_config(cls, config: FetchConfig, *, attempts: int) -> FetchRetryPolicy:
        return cls(
            max_attempts=attempts,
            base_delay=config.base_delay_seconds,
            max_delay=config.max_delay_seconds,
            jitter=config.jitter_seconds,
            base_timeout=config.base_timeout_seconds,
        )


class MetricsWindow:
    """The most recent fetch metrics; the oldest entry is evicted first."""

    def __init__(self, size: int = DEFAULT_METRICS_WINDOW) -> None:
        if size < 1:
            raise ValueError("metrics window size must be positive")
        self._metrics: deque[FetchMetric] = deque(maxlen=size)

    def __len__(self) -> int:
        return len(self._metrics)

    def __iter__(self) -> Iterator[FetchMetric]:
        return iter(self._metrics)

    @property
    def size(self) -> int:
        return self._metrics.maxlen or 0

    def record(self, metric: FetchMetric) -> None:
        self._metrics.append(metric)

    def success_rate(self) -> float:
        if not self._metrics:
            return 0.0
        return sum(1 for metric in self._metrics if metric.success) / len(self._metrics)

    def average_duration_ms(self) -> float:
        if not self._metrics:
            return 0.0
        return sum(metric.duration_ms for metric in self._metrics) / len(self._metrics)


class AdaptiveBatchSizer:
    """Additive increase/decrease of the batch size from rolling metrics.

    Grows by one while more than 80% of requests succeed in under 5 s on
    average; shrinks by one when fewer than half succeed or requests average
    over 15 s.
    """

    GROW_SUCCESS_RATE = 0.8
    GROW_MAX_DURATION_MS = 5000.0
    SHRINK_SUCCESS_RATE = 0.5
    SHRINK_MIN_DURATION_MS = 15000.0

    def __init__(
        self,
        initial: int = DEFAULT_INITIAL_BATCH_SIZE,
        minimum: int = MIN_BATCH_SIZE,
        maximum: int = MAX_BATCH_SIZE,
        window: MetricsWindow | None = None,
    ) -> None:
        if minimum < 1 or minimum > maximum:
            raise ValueError(f"invalid batch size bounds [{minimum}, {maximum}]")
        self.minimum = minimum
        self.maximum = maximum
        self.size = max(minimum, min(initial, maximum))
        self.window = window if window is not None else MetricsWindow()

    def observe(self, metric: FetchMetric) -> int:
        self.window.record(metric)
        return self.adjust()

    def adjust(self) -> int:
        if not len(self.window):
            return self.size
        success_rate = self.window.success_rate()
        average_ms = self.window.average_duration_ms()
        if success_rate > self.GROW_SUCCESS_RATE and average_ms < self.GROW_MAX_DURATION_MS:
            self.size = min(self.size + 1, self.maximum)
        elif success_rate < self.SHRINK_SUCCESS_RATE or average_ms > self.SHRINK_MIN_DURATION_MS:
            self.size = max(self.size - 1, self.minimum)
        return self.size

    @classmethod
    def from_config(cls, config: FetchConfig) -> AdaptiveBatchSizer:
        return cls(
            initial=config.initial_batch_size,
            minimum=config.min_batch_size,
            maximum=config.max_batch_size,
            window=MetricsWindow(config.metrics_window),
        )
