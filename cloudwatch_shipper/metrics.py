"""Metrics collector — thread-safe counters shared by the pipeline stages."""

import logging
import statistics
import threading
import time
from collections import deque

logger = logging.getLogger(__name__)

# Latency stats cover only the most recent uploads.
UPLOAD_WINDOW = 1000


class PipelineMetrics:
    """Collects counters about resolution, batching and uploads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records_resolved: int = 0
        self._cache_hits: int = 0
        self._records_dropped: int = 0
        self._flush_triggers: dict = {"size": 0, "timer": 0}
        self._batches_uploaded: int = 0
        self._batches_failed: int = 0
        self._events_uploaded: int = 0
        self._bytes_uploaded: int = 0
        self._upload_times: deque[float] = deque(maxlen=UPLOAD_WINDOW)
        self._start_time = time.monotonic()

    def record_resolution(self, cache_hit: bool) -> None:
        with self._lock:
            self._records_resolved += 1
            if cache_hit:
                self._cache_hits += 1

    def record_drop(self) -> None:
        with self._lock:
            self._records_dropped += 1

    def record_flush(self, trigger: str = "size") -> None:
        """Count a batch handed to the uploader; *trigger* is "size" or "timer"."""
        with self._lock:
            self._flush_triggers[trigger] = self._flush_triggers.get(trigger, 0) + 1

    def record_upload(self, events: int, size: int, upload_time_ms: float) -> None:
        """Record metrics for a single successful PutLogEvents call.

        Args:
            events: Number of log events in the batch.
            size: Computed batch size in bytes.
            upload_time_ms: Time taken by the call, in milliseconds.
        """
        with self._lock:
            self._batches_uploaded += 1
            self._events_uploaded += events
            self._bytes_uploaded += size
            self._upload_times.append(upload_time_ms)

    def record_failure(self) -> None:
        with self._lock:
            self._batches_failed += 1

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all collected metrics."""
        with self._lock:
            upload_times = list(self._upload_times)
            avg_upload = (
                sum(upload_times) / len(upload_times) if upload_times else 0.0
            )
            return {
                "records_resolved": self._records_resolved,
                "cache_hits": self._cache_hits,
                "records_dropped": self._records_dropped,
                "flush_triggers": dict(self._flush_triggers),
                "batches_uploaded": self._batches_uploaded,
                "batches_failed": self._batches_failed,
                "events_uploaded": self._events_uploaded,
                "bytes_uploaded": self._bytes_uploaded,
                "avg_upload_time_ms": avg_upload,
                "p95_upload_time_ms": self._percentile(upload_times, 95),
                "uptime_seconds": time.monotonic() - self._start_time,
            }

    @staticmethod
    def _percentile(data: list, pct: int) -> float:
        """Linear-interpolated *pct*-th percentile; 0.0 when there is no data."""
        if len(data) < 2:
            return float(data[0]) if data else 0.0
        return float(statistics.quantiles(data, n=100, method="inclusive")[pct - 1])
