"""Destination resolver: maps a record's source to a cached (group, stream)."""

import logging

from cloudwatch_shipper.metadata import MetadataProvider
from cloudwatch_shipper.metrics import PipelineMetrics
from cloudwatch_shipper.models import (
    Destination,
    Record,
    RenderContext,
    TaggedRecord,
    tag_record,
)
from cloudwatch_shipper.naming import NamingRules

logger = logging.getLogger(__name__)


class DestinationResolver:
    """Resolves destinations once per source and caches them for the process lifetime.

    Owned by the ingestion thread; the cache is never shared.
    """

    def __init__(
        self,
        metadata: MetadataProvider,
        rules: NamingRules,
        logger_host_name: str,
        metrics: PipelineMetrics | None = None,
    ):
        self._metadata = metadata
        self._rules = rules
        self._logger_host = logger_host_name
        self._metrics = metrics or PipelineMetrics()
        self._destinations: dict[str, Destination] = {}

    def resolve(self, record: Record) -> TaggedRecord:
        """Tag *record* with its destination.

        Raises MetadataLookupError when the source cannot be inspected.
        """
        destination = self._destinations.get(record.source_id)
        cache_hit = destination is not None
        if destination is None:
            destination = self._resolve_destination(record.source_id)
            self._destinations[record.source_id] = destination
        self._metrics.record_resolution(cache_hit)
        return tag_record(record, destination)

    def _resolve_destination(self, source_id: str) -> Destination:
        meta = self._metadata.lookup(source_id)
        context = RenderContext(
            host_name=meta.host_name,
            logger_host_name=self._logger_host,
            source_id=source_id,
            display_name=meta.display_name,
            env=meta.env,
            labels=meta.labels,
        )
        destination = Destination(
            group=self._rules.group_name(context),
            stream=self._rules.stream_name(context),
            stream_key=meta.display_name or source_id,
        )
        logger.debug(
            "Resolved %s (%s) to %s-%s",
            context.display_name, source_id, destination.group, destination.stream,
        )
        return destination

    def cached(self, source_id: str) -> Destination | None:
        return self._destinations.get(source_id)

    def __len__(self) -> int:
        return len(self._destinations)
