"""DockerLogCollector: follows container output and emits one Record per line."""

import logging
import queue
import threading
import time

import docker
from docker.errors import DockerException

from cloudwatch_shipper.batcher import put_until_shutdown
from cloudwatch_shipper.models import Record, parse_env

logger = logging.getLogger(__name__)

IGNORE_ENV = "LOGSPOUT"


def split_lines(partial: str, chunk: str) -> tuple[list[str], str]:
    """Join *chunk* onto a pending partial line and return (complete lines, new partial)."""
    data = partial + chunk
    lines = data.split("\n")
    remainder = lines.pop()
    return [line.rstrip("\r") for line in lines if line.strip()], remainder


class DockerLogCollector:
    """One follower thread per running container, plus a watcher for new ones."""

    def __init__(self, client: docker.DockerClient, out: queue.Queue,
                 shutdown_event: threading.Event):
        self._client = client
        self._out = out
        self._shutdown = shutdown_event
        self._followed: set[str] = set()
        self._lock = threading.Lock()
        self._events = None

    def start(self):
        for container in self._client.containers.list():
            self._follow(container)
        threading.Thread(target=self._watch_events, daemon=True, name="docker-events").start()

    def records(self):
        """Yield collected records until shutdown."""
        while not self._shutdown.is_set():
            try:
                yield self._out.get(timeout=0.5)
            except queue.Empty:
                continue

    def stop(self):
        self._shutdown.set()
        if self._events is not None:
            self._events.close()

    def _follow(self, container):
        env = parse_env((container.attrs.get("Config") or {}).get("Env"))
        if env.get(IGNORE_ENV, "").lower() == "ignore":
            logger.info("Ignoring container %s", container.name)
            return
        with self._lock:
            if container.id in self._followed:
                return
            self._followed.add(container.id)
        logger.info("Following container %s (%s)", container.name, container.short_id)
        threading.Thread(
            target=self._pump, args=(container,), daemon=True,
            name=f"follow-{container.short_id}",
        ).start()

    def _emit(self, container, line: str) -> bool:
        return put_until_shutdown(
            self._out, Record(source_id=container.id, payload=line), self._shutdown,
        )

    def _pump(self, container):
        """Forward *container*'s lines, blocking while the output queue is full."""
        partial = ""
        try:
            stream = container.logs(stream=True, follow=True, since=int(time.time()))
            for chunk in stream:
                if self._shutdown.is_set():
                    break
                lines, partial = split_lines(partial, chunk.decode("utf-8", errors="replace"))
                if not all(self._emit(container, line) for line in lines):
                    return
            if partial.strip():
                self._emit(container, partial)
        except (DockerException, OSError) as exc:
            logger.warning("Stopped following %s: %s", container.name, exc)
        finally:
            with self._lock:
                self._followed.discard(container.id)

    def _watch_events(self):
        try:
            self._events = self._client.events(
                decode=True, filters={"type": "container", "event": "start"},
            )
            for event in self._events:
                if self._shutdown.is_set():
                    break
                try:
                    self._follow(self._client.containers.get(event["id"]))
                except (DockerException, OSError) as exc:
                    logger.warning("Cannot follow started container %s: %s", event.get("id"), exc)
        except (DockerException, OSError) as exc:
            if not self._shutdown.is_set():
                logger.error("Docker event stream closed: %s", exc)
