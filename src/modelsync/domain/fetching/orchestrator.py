"""Concurrent catalog fetching across many channels.

Channels are fetched in batches that run concurrently on one event loop.
Each channel's ``catalog_state`` is updated as soon as its own request
settles. Batches are separated by a short pause, and the batch size follows
an ``AdaptiveBatchSizer``. A failing channel is marked failed and never
aborts the rest of the run.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from modelsync.config.fetch import (
    BATCH_TIMEOUT_GRACE_SECONDS,
    DEFAULT_BATCH_DELAY_SECONDS,
    DEFAULT_PREFETCH_COUNT,
    DEFAULT_PREFETCH_DELAY_SECONDS,
)
from modelsync.domain.errors import NON_RETRYABLE_ERRORS, RETRYABLE_ERRORS
from modelsync.domain.model import CatalogStatus, FetchMetric

from .policy import AdaptiveBatchSizer, FetchRetryPolicy

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from modelsync.config.fetch import FetchConfig
    from modelsync.domain.model import Channel

log = getLogger(__name__)

type FetchOne = Callable[[int], Awaitable[list[str]]]
type Sleep = Callable[[float], Awaitable[None]]
type Clock = Callable[[], float]


@dataclass(slots=True)
class ChannelOutcome:
    channel_id: int
    models: list[str] = field(default_factory=list[str])
    error: str | None = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class FetchReport:
    outcomes: dict[int, ChannelOutcome] = field(default_factory=dict[int, ChannelOutcome])
    metrics: list[FetchMetric] = field(default_factory=list[FetchMetric])
    batch_sizes: list[int] = field(default_factory=list[int])

    @property
    def succeeded(self) -> list[int]:
        return [cid for cid, outcome in self.outcomes.items() if outcome.success]

    @property
    def failed(self) -> list[int]:
        return [cid for cid, outcome in self.outcomes.items() if not outcome.success]

    def models_for(self, channel_id: int) -> list[str]:
        outcome = self.outcomes.get(channel_id)
        return list(outcome.models) if outcome else []


def _describe(error: BaseException) -> str:
    if isinstance(error, TimeoutError):
        return "request timed out"
    return str(error) or type(error).__name__


class FetchOrchestrator:
    def __init__(
        self,
        fetch_one: FetchOne,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
        rand: Callable[[], float] = random.random,
        bulk_retry: FetchRetryPolicy | None = None,
        retry: FetchRetryPolicy | None = None,
        sizer: AdaptiveBatchSizer | None = None,
        batch_delay: float = DEFAULT_BATCH_DELAY_SECONDS,
        batch_timeout: float | None = None,
    ) -> None:
        self._fetch_one = fetch_one
        self._sleep = sleep
        self._clock = clock
        self._rand = rand
        self.bulk_retry = bulk_retry or FetchRetryPolicy(max_attempts=1)
        self.retry = retry or FetchRetryPolicy(max_attempts=3)
        self.sizer = sizer or AdaptiveBatchSizer()
        self.batch_delay = batch_delay
        self.batch_timeout = batch_timeout

    @classmethod
    def from_config(cls, fetch_one: FetchOne, config: FetchConfig) -> FetchOrchestrator:
        bulk_retry = FetchRetryPolicy.from_config(config, attempts=config.bulk_attempts)
        batch_timeout = config.batch_timeout_seconds
        if batch_timeout is None:
            batch_timeout = bulk_retry.worst_case_seconds() + BATCH_TIMEOUT_GRACE_SECONDS
        return cls(
            fetch_one,
            bulk_retry=bulk_retry,
            retry=FetchRetryPolicy.from_config(config, attempts=config.retry_attempts),
            sizer=AdaptiveBatchSizer.from_config(config),
            batch_delay=config.batch_delay_seconds,
            batch_timeout=batch_timeout,
        )

    async def fetch_all(self, channels: Iterable[Channel]) -> FetchReport:
        pending = list(channels)
        report = FetchReport()
        for channel in pending:
            channel.mark_pending()

        index = 0
        while index < len(pending):
            batch = pending[index : index + self.sizer.size]
            report.batch_sizes.append(len(batch))
            log.debug(f"Fetching batch of {len(batch)} channel(s) starting at #{index}")
            await self._run_batch(batch, report)
            index += len(batch)
            if index < len(pending) and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        failed = report.failed
        if failed:
            log.warning(f"{len(failed)} of {len(pending)} channel(s) failed: {sorted(failed)}")
        else:
            log.info(f"Fetched catalogs for {len(pending)} channel(s)")
        return report

    async def retry_channel(self, channel: Channel) -> ChannelOutcome:
        report = FetchReport()
        return await self._fetch_channel(channel, self.retry, report, adapt=True)

    async def prefetch_top(
        self,
        channels: Sequence[Channel],
        count: int = DEFAULT_PREFETCH_COUNT,
        delay: float = DEFAULT_PREFETCH_DELAY_SECONDS,
    ) -> dict[int, ChannelOutcome]:
        """Fetch the first ``count`` unfetched channels once each, after ``delay``."""

        targets = [
            channel for channel in channels[:count]
            if channel.catalog_state.status is not CatalogStatus.FETCHED
        ]
        if not targets:
            return {}
        if delay > 0:
            await self._sleep(delay)
        single = FetchRetryPolicy(max_attempts=1, base_timeout=self.bulk_retry.base_timeout)
        report = FetchReport()
        await asyncio.gather(
            *(self._fetch_channel(channel, single, report, adapt=False) for channel in targets)
        )
        return report.outcomes

    async def _run_batch(self, batch: Sequence[Channel], report: FetchReport) -> None:
        try:
            async with asyncio.timeout(self.batch_timeout):
                await asyncio.gather(
                    *(self._fetch_channel(channel, self.bulk_retry, report) for channel in batch)
                )
        except TimeoutError:
            for channel in batch:
                if channel.id in report.outcomes:
                    continue
                reason = "batch timed out"
                channel.mark_failed(reason)
                report.outcomes[channel.id] = ChannelOutcome(channel_id=channel.id, error=reason)
            log.warning(f"Batch exceeded {self.batch_timeout}s; unfinished channels marked failed")

    async def _fetch_channel(
        self,
        channel: Channel,
        policy: FetchRetryPolicy,
        report: FetchReport,
        *,
        adapt: bool = True,
    ) -> ChannelOutcome:
        outcome = ChannelOutcome(channel_id=channel.id)
        for attempt in range(1, policy.max_attempts + 1):
            outcome.attempts = attempt
            channel.mark_loading()
            started = self._clock()
            try:
                async with asyncio.timeout(policy.timeout(attempt)):
                    models = await self._fetch_one(channel.id)
            except NON_RETRYABLE_ERRORS as exc:
                self._record(report, channel, started, 0, success=False, adapt=adapt)
                outcome.error = _describe(exc)
                log.warning(f"Channel {channel.id} failed permanently: {outcome.error}")
                break
            except RETRYABLE_ERRORS as exc:
                self._record(report, channel, started, 0, success=False, adapt=adapt)
                outcome.error = _describe(exc)
                if attempt < policy.max_attempts:
                    wait = policy.backoff(attempt, self._rand)
                    log.info(
                        f"Channel {channel.id} attempt {attempt} failed ({outcome.error}); "
                        f"retrying in {wait:.2f}s"
                    )
                    await self._sleep(wait)
                    continue
                break
            except Exception as exc:
                self._record(report, channel, started, 0, success=False, adapt=adapt)
                outcome.error = _describe(exc)
                log.exception(f"Unexpected error fetching channel {channel.id}")
                break
            else:
                self._record(report, channel, started, len(models), success=True, adapt=adapt)
                outcome.models = list(models)
                outcome.error = None
                channel.mark_fetched(outcome.models)
                report.outcomes[channel.id] = outcome
                return outcome

        channel.mark_failed(outcome.error or "unknown error")
        report.outcomes[channel.id] = outcome
        return outcome

    def _record(
        self,
        report: FetchReport,
        channel: Channel,
        started: float,
        result_count: int,
        *,
        success: bool,
        adapt: bool,
    ) -> None:
        now = self._clock()
        metric = FetchMetric(
            channel_id=channel.id,
            duration_ms=(now - started) * 1000.0,
            result_count=result_count,
            success=success,
            timestamp=now,
        )
        report.metrics.append(metric)
        if adapt:
            self.sizer.observe(metric)
