"""Shared pytest fixtures and in-memory fakes for the shipper test suite."""

from __future__ import annotations

import threading

import pytest

from cloudwatch_shipper.errors import LogsServiceError, MetadataLookupError
from cloudwatch_shipper.models import SourceMetadata, TaggedRecord, Record, Destination, tag_record


class FakeMetadata:
    """MetadataProvider backed by a dict; counts lookups per source."""

    def __init__(self, sources: dict[str, SourceMetadata] | None = None):
        self.sources = dict(sources or {})
        self.lookups: dict[str, int] = {}

    def lookup(self, source_id: str) -> SourceMetadata:
        self.lookups[source_id] = self.lookups.get(source_id, 0) + 1
        if source_id not in self.sources:
            raise MetadataLookupError(source_id, "no such container")
        return self.sources[source_id]


class FakeLogsService:
    """In-memory CloudWatch Logs with per-stream sequence tokens."""

    def __init__(self):
        self.groups: set[str] = set()
        self.streams: dict[tuple[str, str], str | None] = {}
        self.puts: list[dict] = []
        self.calls: list[tuple] = []
        self.fail_puts = 0
        self.extra_matches: dict[tuple[str, str], list[dict]] = {}
        self.create_stream_is_noop = False
        self._counter = 0

    def group_exists(self, group):
        self.calls.append(("group_exists", group))
        return group in self.groups

    def create_group(self, group):
        self.calls.append(("create_group", group))
        self.groups.add(group)

    def describe_streams(self, group, prefix):
        self.calls.append(("describe_streams", group, prefix))
        found = [
            {"logStreamName": name, "uploadSequenceToken": token}
            for (g, name), token in self.streams.items()
            if g == group and name.startswith(prefix)
        ]
        return found + self.extra_matches.get((group, prefix), [])

    def create_stream(self, group, stream):
        self.calls.append(("create_stream", group, stream))
        if not self.create_stream_is_noop:
            self.streams[(group, stream)] = None

    def put_records(self, group, stream, token, events):
        self.calls.append(("put_records", group, stream, token))
        self.puts.append(
            {"group": group, "stream": stream, "token": token, "events": list(events)}
        )
        if self.fail_puts:
            self.fail_puts -= 1
            raise LogsServiceError("put_log_events", "throttled", code="ThrottlingException")
        self._counter += 1
        next_token = f"token-{self._counter}"
        self.streams[(group, stream)] = next_token
        return next_token


def make_tagged(payload: str, stream_key: str = "web", group: str = "host-1",
                stream: str | None = None, source_id: str = "c1") -> TaggedRecord:
    destination = Destination(group=group, stream=stream or stream_key, stream_key=stream_key)
    return tag_record(Record(source_id=source_id, payload=payload), destination)


@pytest.fixture()
def shutdown():
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture()
def fake_service() -> FakeLogsService:
    return FakeLogsService()


@pytest.fixture()
def fake_metadata() -> FakeMetadata:
    return FakeMetadata({
        "c1": SourceMetadata(
            env={"APP": "billing"},
            labels={"team": "payments"},
            display_name="web",
            host_name="abc123",
        ),
        "c2": SourceMetadata(
            env={"LOG_STREAM": "{{ labels.team }}-{{ display_name }}"},
            labels={"team": "search"},
            display_name="indexer",
            host_name="def456",
        ),
    })
