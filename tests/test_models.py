"""Tests for the data model and wire sizing."""

import datetime

import pytest

from cloudwatch_shipper.models import (
    MESSAGE_OVERHEAD,
    SIZE_FACTOR,
    Batch,
    Destination,
    Record,
    RenderContext,
    parse_env,
    tag_record,
    to_event,
    wire_size,
)


def test_wire_size_scales_payload_and_adds_overhead():
    assert wire_size("hello") == 5 * SIZE_FACTOR + MESSAGE_OVERHEAD
    assert wire_size("") == MESSAGE_OVERHEAD


def test_wire_size_counts_utf8_bytes():
    # "é" is two bytes in UTF-8
    assert wire_size("é") == 2 * SIZE_FACTOR + MESSAGE_OVERHEAD


def test_record_is_frozen():
    record = Record(source_id="c1", payload="hello")
    with pytest.raises(AttributeError):
        record.payload = "changed"


def test_tag_record_copies_fields_and_destination():
    arrived = datetime.datetime(2024, 1, 15, 8, 0, tzinfo=datetime.timezone.utc)
    record = Record(source_id="c1", payload="hello", arrival_time=arrived)
    tagged = tag_record(record, Destination(group="g", stream="s", stream_key="web"))

    assert tagged.source_id == "c1"
    assert tagged.payload == "hello"
    assert tagged.arrival_time == arrived
    assert (tagged.group, tagged.stream, tagged.stream_key) == ("g", "s", "web")
    assert tagged.timestamp >= arrived


def test_to_event_uses_millisecond_timestamp():
    record = tag_record(
        Record(source_id="c1", payload="hello"),
        Destination(group="g", stream="s", stream_key="web"),
    )
    event = to_event(record)
    assert event["message"] == "hello"
    assert event["timestamp"] == int(record.timestamp.timestamp() * 1000)


def test_batch_append_tracks_size():
    batch = Batch(stream_key="web", group="g", stream="s")
    dest = Destination(group="g", stream="s", stream_key="web")
    for payload in ("a", "bb", "ccc"):
        batch.append(tag_record(Record(source_id="c1", payload=payload), dest))

    assert len(batch) == 3
    assert batch.size == sum(wire_size(p) for p in ("a", "bb", "ccc"))


def test_sealed_batch_records_are_immutable():
    batch = Batch(stream_key="web", group="g", stream="s")
    batch.append(tag_record(
        Record(source_id="c1", payload="x"),
        Destination(group="g", stream="s", stream_key="web"),
    ))
    sealed = batch.seal()
    assert isinstance(sealed.records, tuple)
    assert sealed.size == batch.size


def test_parse_env():
    env = parse_env(["A=1", "B=x=y", "EMPTY=", "NOVALUE"])
    assert env == {"A": "1", "B": "x=y", "EMPTY": ""}
    assert parse_env(None) == {}


def test_render_context_template_vars():
    ctx = RenderContext(
        host_name="abc", logger_host_name="logger", source_id="c1",
        display_name="web", env={"A": "1"}, labels={"l": "v"},
    )
    assert ctx.as_template_vars() == {
        "host_name": "abc",
        "logger_host_name": "logger",
        "source_id": "c1",
        "display_name": "web",
        "env": {"A": "1"},
        "labels": {"l": "v"},
    }
