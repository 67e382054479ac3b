"""Thin wrapper over the boto3 CloudWatch Logs client."""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cloudwatch_shipper.errors import LogsServiceError

logger = logging.getLogger(__name__)

ALREADY_EXISTS = "ResourceAlreadyExistsException"


def create_logs_client(region: str):
    """Create a boto3 ``logs`` client for *region*."""
    session = boto3.Session()
    return session.client("logs", region_name=region)


def _error_code(exc: Exception) -> str | None:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


class LogsService:
    """The remote operations the uploader needs, with botocore errors wrapped."""

    def __init__(self, client):
        self._client = client

    def _call(self, operation: str, **kwargs) -> dict:
        try:
            return getattr(self._client, operation)(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise LogsServiceError(operation, str(exc), code=_error_code(exc)) from exc

    def group_exists(self, group: str) -> bool:
        """True if a log group named exactly *group* exists."""
        logger.debug("Checking for group: %s...", group)
        paginator = self._client.get_paginator("describe_log_groups")
        try:
            for page in paginator.paginate(logGroupNamePrefix=group):
                for found in page.get("logGroups", []):
                    if found.get("logGroupName") == group:
                        return True
        except (ClientError, BotoCoreError) as exc:
            raise LogsServiceError("describe_log_groups", str(exc), code=_error_code(exc)) from exc
        return False

    def create_group(self, group: str) -> None:
        logger.debug("Creating group: %s...", group)
        try:
            self._call("create_log_group", logGroupName=group)
        except LogsServiceError as exc:
            if exc.code != ALREADY_EXISTS:
                raise
            logger.debug("Group %s already exists", group)

    def describe_streams(self, group: str, prefix: str) -> list[dict]:
        """Return every stream in *group* whose name starts with *prefix*."""
        logger.debug("Describing stream %s-%s...", group, prefix)
        response = self._call(
            "describe_log_streams", logGroupName=group, logStreamNamePrefix=prefix,
        )
        return response.get("logStreams", [])

    def create_stream(self, group: str, stream: str) -> None:
        logger.debug("Creating stream for group %s, stream %s...", group, stream)
        try:
            self._call("create_log_stream", logGroupName=group, logStreamName=stream)
        except LogsServiceError as exc:
            if exc.code != ALREADY_EXISTS:
                raise
            logger.debug("Stream %s-%s already exists", group, stream)

    def put_records(
        self, group: str, stream: str, token: str | None, events: list[dict],
    ) -> str | None:
        """Submit *events* in order; returns the next sequence token, if any."""
        params = {
            "logGroupName": group,
            "logStreamName": stream,
            "logEvents": events,
        }
        if token:
            params["sequenceToken"] = token
        response = self._call("put_log_events", **params)
        rejected = response.get("rejectedLogEventsInfo")
        if rejected:
            logger.warning("CloudWatch rejected events for %s-%s: %s", group, stream, rejected)
        return response.get("nextSequenceToken")
