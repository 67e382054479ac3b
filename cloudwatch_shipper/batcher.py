"""BatchAccumulator: consumer thread that groups tagged records into per-stream batches."""

import logging
import queue
import threading
from threading import Thread

from cloudwatch_shipper.metrics import PipelineMetrics
from cloudwatch_shipper.models import Batch, TaggedRecord, new_batch

logger = logging.getLogger(__name__)

# Posted onto the inbound queue by the timer thread.
TICK = object()

_POLL_INTERVAL = 0.5

# PutLogEvents accepts at most this many events per call.
MAX_BATCH_EVENTS = 10_000


def put_until_shutdown(q: queue.Queue, item, shutdown: threading.Event) -> bool:
    """Block on *q* until *item* is accepted or shutdown is signalled."""
    while not shutdown.is_set():
        try:
            q.put(item, timeout=_POLL_INTERVAL)
            return True
        except queue.Full:
            continue
    return False


class BatchAccumulator(Thread):
    """Keeps one open batch per stream key.

    A batch is handed to the output queue when the next record would push it
    past *max_batch_size* or beyond MAX_BATCH_EVENTS events, or when the flush
    timer ticks. Records and ticks arrive on the same FIFO queue, so neither
    is favoured over the other.
    """

    def __init__(
        self,
        inbound: queue.Queue,
        outbound: queue.Queue,
        shutdown_event: threading.Event,
        max_batch_size: int,
        flush_interval: float,
        metrics: PipelineMetrics | None = None,
    ):
        super().__init__(daemon=True, name="batch-accumulator")
        self._inbound = inbound
        self._outbound = outbound
        self._shutdown = shutdown_event
        self._max_batch_size = max_batch_size
        self._flush_interval = flush_interval
        self._metrics = metrics or PipelineMetrics()
        self._batches: dict[str, Batch] = {}
        self._timer: Thread | None = None

    @property
    def pending(self) -> int:
        """Number of streams with an open batch."""
        return len(self._batches)

    def add(self, record: TaggedRecord) -> None:
        """Append *record* to its stream's batch, flushing first on overflow."""
        size = record.wire_size
        batch = self._batches.get(record.stream_key)
        if batch is None:
            batch = self._batches[record.stream_key] = new_batch(record)

        if batch.records and (
            len(batch) >= MAX_BATCH_EVENTS or batch.size + size > self._max_batch_size
        ):
            self._emit(batch, trigger="size")
            batch = self._batches[record.stream_key] = new_batch(record)

        if size > self._max_batch_size:
            logger.debug(
                "Record for %s is %d bytes, over the %d byte limit; sending alone",
                record.stream_key, size, self._max_batch_size,
            )
        batch.append(record)

    def flush_all(self) -> None:
        """Hand off every open batch and forget them."""
        batches = list(self._batches.values())
        self._batches.clear()
        for batch in batches:
            self._emit(batch, trigger="timer")

    def _emit(self, batch: Batch, trigger: str) -> None:
        logger.debug(
            "Flushing %s batch for %s-%s (%d records, %d bytes)",
            trigger, batch.group, batch.stream, len(batch), batch.size,
        )
        if put_until_shutdown(self._outbound, batch.seal(), self._shutdown):
            self._metrics.record_flush(trigger)

    def _run_timer(self) -> None:
        while not self._shutdown.wait(self._flush_interval):
            put_until_shutdown(self._inbound, TICK, self._shutdown)

    def run(self):
        self._timer = Thread(target=self._run_timer, daemon=True, name="flush-timer")
        self._timer.start()
        while not self._shutdown.is_set():
            try:
                item = self._inbound.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue

            if item is TICK:
                self.flush_all()
            else:
                self.add(item)

    def stop(self):
        """Signal shutdown; open batches are discarded."""
        self._shutdown.set()
        if self._timer:
            self._timer.join(timeout=5)
