"""Uploader: consumer thread that posts batches to CloudWatch Logs.

Keeps the sequence token of every stream it has written to. A token is only
ever replaced by the token returned from a successful PutLogEvents call; a
failed call leaves the cached token as it was.
"""

import logging
import queue
import threading
import time
from threading import Thread

from cloudwatch_shipper.cloudwatch import LogsService
from cloudwatch_shipper.errors import (
    AmbiguousStreamError,
    LogsServiceError,
    TokenResolutionError,
)
from cloudwatch_shipper.metrics import PipelineMetrics
from cloudwatch_shipper.models import Batch, to_event

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.5


class Uploader(Thread):
    def __init__(
        self,
        inbound: queue.Queue,
        service: LogsService,
        shutdown_event: threading.Event,
        metrics: PipelineMetrics | None = None,
    ):
        super().__init__(daemon=True, name="uploader")
        self._inbound = inbound
        self._service = service
        self._shutdown = shutdown_event
        self._metrics = metrics or PipelineMetrics()
        self._tokens: dict[str, str] = {}

    def cached_token(self, stream_key: str) -> str | None:
        return self._tokens.get(stream_key)

    def run(self):
        while not self._shutdown.is_set():
            try:
                batch = self._inbound.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            self.upload(batch)

    def upload(self, batch: Batch) -> bool:
        """Send *batch*; returns False if it was abandoned."""
        logger.debug(
            "Submitting batch for %s-%s (length %d, size %d)",
            batch.group, batch.stream, len(batch), batch.size,
        )

        if batch.stream_key in self._tokens:
            token = self._tokens[batch.stream_key]
            logger.debug("Got token from cache: %s", token)
        else:
            logger.debug("Fetching token from CloudWatch...")
            try:
                token = self.get_sequence_token(batch.group, batch.stream)
            except AmbiguousStreamError as exc:
                logger.error("Configuration problem, dropping batch: %s", exc)
                self._metrics.record_failure()
                return False
            except (TokenResolutionError, LogsServiceError) as exc:
                logger.error("Error fetching token for %s-%s: %s", batch.group, batch.stream, exc)
                self._metrics.record_failure()
                return False
            if token is not None:
                self._tokens[batch.stream_key] = token
                logger.debug("Got token from CloudWatch: %s", token)

        events = [to_event(record) for record in batch.records]
        logger.debug(
            "POSTing PutLogEvents to %s-%s with %d messages, %d bytes",
            batch.group, batch.stream, len(events), batch.size,
        )
        start = time.monotonic()
        try:
            next_token = self._service.put_records(batch.group, batch.stream, token, events)
        except LogsServiceError as exc:
            logger.error(
                "Dropping batch of %d for %s-%s: %s",
                len(events), batch.group, batch.stream, exc,
            )
            self._metrics.record_failure()
            return False
        elapsed_ms = (time.monotonic() - start) * 1000

        self._metrics.record_upload(len(events), batch.size, elapsed_ms)
        if next_token is not None:
            logger.debug(
                "Caching new sequence token for %s-%s: %s",
                batch.group, batch.stream, next_token,
            )
            self._tokens[batch.stream_key] = next_token
        return True

    def get_sequence_token(self, group: str, stream: str, retry: bool = True) -> str | None:
        """Return the upload token for *stream*, creating the group and stream as needed.

        A brand-new stream has no token, so None is a valid result. When no
        stream matches, it is created and the lookup is retried once.
        """
        if not self._service.group_exists(group):
            self._service.create_group(group)

        streams = self._service.describe_streams(group, stream)
        if len(streams) > 1:
            raise AmbiguousStreamError(group, stream, len(streams))
        if streams:
            return streams[0].get("uploadSequenceToken")

        if not retry:
            raise TokenResolutionError(f"stream {group}-{stream} not found after creation")
        self._service.create_stream(group, stream)
        return self.get_sequence_token(group, stream, retry=False)
