"""Tests for the Docker log collector."""

import queue
import threading
from unittest.mock import MagicMock

from docker.errors import APIError

from cloudwatch_shipper.collector import DockerLogCollector, split_lines


def _container(cid="c1", name="web", env=None, chunks=()):
    container = MagicMock()
    container.id = cid
    container.short_id = cid[:10]
    container.name = name
    container.attrs = {"Config": {"Env": env or []}}
    container.logs.return_value = iter(chunks)
    return container


def _drain(q):
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


class TestSplitLines:
    def test_complete_lines(self):
        assert split_lines("", "a\nb\n") == (["a", "b"], "")

    def test_partial_line_carried(self):
        lines, partial = split_lines("", "first\nsec")
        assert lines == ["first"]
        lines, partial = split_lines(partial, "ond\n")
        assert lines == ["second"]
        assert partial == ""

    def test_blank_lines_and_crlf(self):
        assert split_lines("", "a\r\n\n  \nb\n") == (["a", "b"], "")


class TestPump:
    def test_lines_become_records(self):
        out: queue.Queue = queue.Queue()
        container = _container(chunks=[b"hello\nwor", b"ld\n", b"tail"])
        collector = DockerLogCollector(MagicMock(), out, threading.Event())

        collector._pump(container)

        records = _drain(out)
        assert [r.payload for r in records] == ["hello", "world", "tail"]
        assert all(r.source_id == "c1" for r in records)

    def test_stream_error_is_logged_not_raised(self):
        out: queue.Queue = queue.Queue()
        container = _container()
        container.logs.side_effect = APIError("container gone")
        collector = DockerLogCollector(MagicMock(), out, threading.Event())

        collector._pump(container)
        assert _drain(out) == []


class TestFollow:
    def test_ignored_containers_skipped(self):
        client = MagicMock()
        client.containers.list.return_value = [
            _container("c1", "shipper", env=["LOGSPOUT=ignore"]),
        ]
        collector = DockerLogCollector(client, queue.Queue(), threading.Event())
        collector._follow(client.containers.list.return_value[0])
        client.containers.list.return_value[0].logs.assert_not_called()

    def test_records_generator_stops_on_shutdown(self):
        out: queue.Queue = queue.Queue()
        shutdown = threading.Event()
        collector = DockerLogCollector(MagicMock(), out, shutdown)
        out.put("first")
        gen = collector.records()
        assert next(gen) == "first"
        shutdown.set()
        assert list(gen) == []


class TestBackpressure:
    def test_full_queue_blocks_pump_until_drained(self):
        out: queue.Queue = queue.Queue(maxsize=1)
        out.put("backlog")
        container = _container(chunks=[b"one\ntwo\n"])
        collector = DockerLogCollector(MagicMock(), out, threading.Event())

        pump = threading.Thread(target=collector._pump, args=(container,), daemon=True)
        pump.start()
        pump.join(timeout=0.3)
        assert pump.is_alive()
        assert out.qsize() == 1

        received = [out.get(timeout=2) for _ in range(3)]
        pump.join(timeout=2)
        assert not pump.is_alive()
        assert received[0] == "backlog"
        assert [r.payload for r in received[1:]] == ["one", "two"]

    def test_shutdown_releases_blocked_pump(self):
        out: queue.Queue = queue.Queue(maxsize=1)
        out.put("backlog")
        shutdown = threading.Event()
        container = _container(chunks=[b"one\n"])
        collector = DockerLogCollector(MagicMock(), out, shutdown)

        pump = threading.Thread(target=collector._pump, args=(container,), daemon=True)
        pump.start()
        pump.join(timeout=0.2)
        assert pump.is_alive()

        shutdown.set()
        pump.join(timeout=2)
        assert not pump.is_alive()
        assert _drain(out) == ["backlog"]
