"""Records, render context, tagged records and batches."""

import datetime
from dataclasses import dataclass, field, replace

# CloudWatch batch sizing rules: each event costs its scaled payload length
# plus a fixed per-event overhead.
SIZE_FACTOR = 8
MESSAGE_OVERHEAD = 26


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class Record:
    source_id: str
    payload: str
    arrival_time: datetime.datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class SourceMetadata:
    env: dict = field(default_factory=dict)
    labels: dict = field(default_factory=dict)
    display_name: str = ""
    host_name: str = ""


@dataclass(frozen=True)
class RenderContext:
    host_name: str
    logger_host_name: str
    source_id: str
    display_name: str
    env: dict = field(default_factory=dict)
    labels: dict = field(default_factory=dict)

    def as_template_vars(self) -> dict:
        """Expose every field as a top-level template variable."""
        return {
            "host_name": self.host_name,
            "logger_host_name": self.logger_host_name,
            "source_id": self.source_id,
            "display_name": self.display_name,
            "env": dict(self.env),
            "labels": dict(self.labels),
        }


@dataclass(frozen=True)
class Destination:
    group: str
    stream: str
    stream_key: str


@dataclass(frozen=True)
class TaggedRecord:
    source_id: str
    payload: str
    arrival_time: datetime.datetime
    group: str
    stream: str
    stream_key: str
    timestamp: datetime.datetime = field(default_factory=_utcnow)

    @property
    def timestamp_millis(self) -> int:
        return int(self.timestamp.timestamp() * 1000)

    @property
    def wire_size(self) -> int:
        return wire_size(self.payload)


def tag_record(record: Record, destination: Destination) -> TaggedRecord:
    """Attach a resolved destination and a resolution timestamp to *record*."""
    return TaggedRecord(
        source_id=record.source_id,
        payload=record.payload,
        arrival_time=record.arrival_time,
        group=destination.group,
        stream=destination.stream,
        stream_key=destination.stream_key,
    )


def wire_size(payload: str) -> int:
    """Size a payload counts against the batch limit."""
    return len(payload.encode("utf-8")) * SIZE_FACTOR + MESSAGE_OVERHEAD


def to_event(record: TaggedRecord) -> dict:
    """Convert a tagged record to a PutLogEvents input event."""
    return {"timestamp": record.timestamp_millis, "message": record.payload}


@dataclass
class Batch:
    """Ordered records bound for one stream.

    Only the accumulator mutates an open batch; once handed to the uploader
    it is sealed and treated as read-only.
    """

    stream_key: str
    group: str
    stream: str
    records: list[TaggedRecord] = field(default_factory=list)
    size: int = 0

    def append(self, record: TaggedRecord) -> None:
        self.records.append(record)
        self.size += record.wire_size

    def seal(self) -> "Batch":
        return replace(self, records=tuple(self.records))

    def __len__(self) -> int:
        return len(self.records)


def new_batch(record: TaggedRecord) -> Batch:
    return Batch(stream_key=record.stream_key, group=record.group, stream=record.stream)


def parse_env(lines: list[str] | None) -> dict[str, str]:
    """Parse Docker-style ``KEY=VALUE`` env lines into a dict.

    Lines without ``=`` are ignored; values may themselves contain ``=``.
    """
    env: dict[str, str] = {}
    for line in lines or []:
        key, sep, value = line.partition("=")
        if sep:
            env[key] = value
    return env
