"""Pipeline wiring — resolver, accumulator and uploader joined by bounded queues."""

import logging
import queue
import socket
import threading
from collections.abc import Iterable

from cloudwatch_shipper.batcher import BatchAccumulator, put_until_shutdown
from cloudwatch_shipper.cloudwatch import LogsService
from cloudwatch_shipper.config import Config
from cloudwatch_shipper.errors import MetadataLookupError, StartupError
from cloudwatch_shipper.metadata import MetadataProvider
from cloudwatch_shipper.metrics import PipelineMetrics
from cloudwatch_shipper.models import Record
from cloudwatch_shipper.naming import GROUP_KEY, STREAM_KEY, NamingRules
from cloudwatch_shipper.resolver import DestinationResolver
from cloudwatch_shipper.uploader import Uploader

logger = logging.getLogger(__name__)


def logger_host_name() -> str:
    """Host name of the shipper itself; the default log group."""
    try:
        host = socket.gethostname()
    except OSError as exc:
        raise StartupError(f"cannot resolve host name: {exc}") from exc
    if not host:
        raise StartupError("cannot resolve host name: empty result")
    return host


class ShippingPipeline:
    """Routes records to CloudWatch Logs.

    The caller's thread runs the ingestion loop (resolution happens there);
    batching and uploading each get their own thread.
    """

    def __init__(
        self,
        config: Config,
        metadata: MetadataProvider,
        service: LogsService,
        shutdown_event: threading.Event,
        host_name: str | None = None,
        metrics: PipelineMetrics | None = None,
    ):
        self._config = config
        self._shutdown = shutdown_event
        self._metrics = metrics or PipelineMetrics()
        self._records: queue.Queue = queue.Queue(maxsize=config.queue_size)
        self._batches: queue.Queue = queue.Queue(maxsize=config.queue_size)

        rules = NamingRules(
            options=config.options,
            environ={GROUP_KEY: config.log_group, STREAM_KEY: config.log_stream},
        )
        self._resolver = DestinationResolver(
            metadata, rules, host_name or logger_host_name(), self._metrics,
        )
        self._accumulator = BatchAccumulator(
            self._records,
            self._batches,
            shutdown_event,
            max_batch_size=config.max_batch_size,
            flush_interval=config.flush_interval,
            metrics=self._metrics,
        )
        self._uploader = Uploader(self._batches, service, shutdown_event, self._metrics)

    @property
    def metrics(self) -> PipelineMetrics:
        return self._metrics

    @property
    def resolver(self) -> DestinationResolver:
        return self._resolver

    @property
    def uploader(self) -> Uploader:
        return self._uploader

    def start(self):
        """Start the accumulator and uploader threads."""
        self._uploader.start()
        self._accumulator.start()
        logger.info(
            "Pipeline started: max_batch_size=%d, flush_interval=%.1fs",
            self._config.max_batch_size, self._config.flush_interval,
        )

    def submit(self, record: Record) -> bool:
        """Resolve and enqueue one record; returns False if it was dropped."""
        try:
            tagged = self._resolver.resolve(record)
        except MetadataLookupError as exc:
            logger.error("Error inspecting source, dropping record: %s", exc)
            self._metrics.record_drop()
            return False
        return put_until_shutdown(self._records, tagged, self._shutdown)

    def stream(self, records: Iterable[Record]):
        """Ingestion loop: submit every record until the iterable ends or shutdown."""
        for record in records:
            if self._shutdown.is_set():
                break
            self.submit(record)

    def stop(self):
        """Signal shutdown and wait for the worker threads; queued batches are lost."""
        self._shutdown.set()
        self._accumulator.stop()
        for worker in (self._accumulator, self._uploader):
            if worker.is_alive():
                worker.join(timeout=5)
        logger.info("Pipeline stopped. Metrics: %s", self._metrics.snapshot())
