"""Source metadata lookup against the Docker Engine API."""

import logging
from typing import Protocol, runtime_checkable

import docker
from docker.errors import DockerException

from cloudwatch_shipper.errors import MetadataLookupError, StartupError
from cloudwatch_shipper.models import SourceMetadata, parse_env

logger = logging.getLogger(__name__)


@runtime_checkable
class MetadataProvider(Protocol):
    def lookup(self, source_id: str) -> SourceMetadata: ...


def connect_docker(base_url: str) -> docker.DockerClient:
    """Create a Docker client and verify the daemon answers a ping."""
    try:
        client = docker.DockerClient(base_url=base_url)
        client.ping()
    except (DockerException, OSError) as exc:
        raise StartupError(f"cannot reach Docker daemon at {base_url}: {exc}") from exc
    logger.info("Connected to Docker daemon at %s", base_url)
    return client


class DockerMetadataProvider:
    """Inspects containers to build SourceMetadata."""

    def __init__(self, client: docker.DockerClient):
        self._client = client

    def lookup(self, source_id: str) -> SourceMetadata:
        try:
            attrs = self._client.containers.get(source_id).attrs
        except (DockerException, OSError) as exc:
            raise MetadataLookupError(source_id, str(exc)) from exc

        container_config = attrs.get("Config") or {}
        return SourceMetadata(
            env=parse_env(container_config.get("Env")),
            labels=dict(container_config.get("Labels") or {}),
            display_name=(attrs.get("Name") or source_id).lstrip("/"),
            host_name=container_config.get("Hostname", ""),
        )
