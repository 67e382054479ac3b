"""Exception types raised across the shipping pipeline."""


class ShipperError(Exception):
    """Base class for all shipper errors."""


class StartupError(ShipperError):
    """Raised when the pipeline cannot be constructed (fatal)."""


class MetadataLookupError(ShipperError):
    """Raised when metadata for a log source cannot be fetched."""

    def __init__(self, source_id: str, reason: str = ""):
        self.source_id = source_id
        message = f"metadata lookup failed for {source_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class LogsServiceError(ShipperError):
    """Raised when a CloudWatch Logs call fails."""

    def __init__(self, operation: str, reason: str, code: str | None = None):
        self.operation = operation
        self.code = code
        super().__init__(f"{operation} failed: {reason}")


class TokenResolutionError(ShipperError):
    """Raised when no sequence token can be resolved for a stream."""


class AmbiguousStreamError(TokenResolutionError):
    """Raised when more than one stream matches a stream-name prefix."""

    def __init__(self, group: str, stream: str, count: int):
        self.group = group
        self.stream = stream
        self.count = count
        super().__init__(
            f"{count} streams match group {group}, stream {stream}"
        )
