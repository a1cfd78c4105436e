"""Concurrent, self-tuning catalog fetching."""

from __future__ import annotations

from .orchestrator import ChannelOutcome, FetchOne, FetchOrchestrator, FetchReport
from .policy import AdaptiveBatchSizer, FetchRetryPolicy, MetricsWindow

__all__ = [
    "AdaptiveBatchSizer",
    "ChannelOutcome",
    "FetchOne",
    "FetchOrchestrator",
    "FetchReport",
    "FetchRetryPolicy",
    "MetricsWindow",
]
