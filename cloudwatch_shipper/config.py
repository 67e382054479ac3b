"""Configuration module — frozen dataclass loaded from YAML options, env vars and CLI args."""

import argparse
import logging
import os
from dataclasses import dataclass, field

import yaml

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 4.0
# CloudWatch Logs PutLogEvents payload limit
DEFAULT_MAX_BATCH_SIZE = 1_048_576


@dataclass(frozen=True)
class Config:
    region: str = "us-east-1"
    docker_host: str = "unix:///var/run/docker.sock"
    log_group: str = ""
    log_stream: str = ""
    options: dict = field(default_factory=dict)
    flush_interval: float = DEFAULT_DELAY
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    queue_size: int = 1
    debug: bool = False


def load_yaml_options(path: str | None) -> dict:
    """Load route options from the ``options`` mapping of a YAML file.

    Returns an empty dict when no path is given or the file is missing.
    """
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    logger.info("Loaded YAML config from %s", path)
    options = data.get("options") or {}
    return {str(k): "" if v is None else str(v) for k, v in options.items()}


def parse_option(text: str) -> tuple[str, str]:
    """Split a ``KEY=VALUE`` CLI option; a bare ``KEY`` maps to an empty value."""
    key, _, value = text.partition("=")
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError(f"invalid option {text!r}, expected KEY=VALUE")
    return key, value


def parse_delay(text: str) -> float:
    """Parse a flush delay in seconds, falling back to the default on bad input."""
    try:
        delay = float(text)
    except (TypeError, ValueError):
        delay = -1.0
    if delay <= 0:
        logger.warning("Error parsing DELAY %r, using default of %.1f", text, DEFAULT_DELAY)
        return DEFAULT_DELAY
    return delay


def parse_positive_int(name: str, text, default: int) -> int:
    """Parse a positive integer setting, falling back to *default* on bad input.

    Zero would turn a bounded queue into an unbounded one, so it is rejected too.
    """
    try:
        value = int(text)
    except (TypeError, ValueError):
        value = 0
    if value <= 0:
        logger.warning("Error parsing %s %r, using default of %d", name, text, default)
        return default
    return value


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CloudWatch Log Shipper")
    parser.add_argument("--region", type=str, default=None,
                        help="AWS region of the CloudWatch Logs endpoint")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to a YAML file with an 'options' mapping")
    parser.add_argument("--option", type=parse_option, action="append", default=[],
                        metavar="KEY=VALUE", help="Route option (repeatable)")
    parser.add_argument("--delay", type=str, default=None,
                        help="Seconds between timer flushes")
    parser.add_argument("--max-batch-size", type=str, default=None)
    parser.add_argument("--debug", action="store_true", default=False)
    return parser


def load_config(argv: list[str] | None = None) -> Config:
    """Build Config from defaults <- route options <- env vars <- CLI args.

    Pass argv for testability; when None, argparse reads sys.argv.
    """
    args = build_cli_parser().parse_args(argv)

    config_path = args.config or os.environ.get("CONFIG_PATH")
    options = load_yaml_options(config_path)
    options.update(dict(args.option))

    delay_text = str(DEFAULT_DELAY)
    if "DELAY" in options:
        delay_text = options["DELAY"]
    if os.environ.get("DELAY"):
        delay_text = os.environ["DELAY"]
    if args.delay is not None:
        delay_text = args.delay

    debug = args.debug or "DEBUG" in options or bool(os.environ.get("DEBUG"))

    max_batch_text = os.environ.get("MAX_BATCH_SIZE", str(Config.max_batch_size))
    if args.max_batch_size is not None:
        max_batch_text = args.max_batch_size

    return Config(
        region=args.region or os.environ.get("AWS_REGION", Config.region),
        docker_host=os.environ.get("DOCKER_HOST") or Config.docker_host,
        log_group=os.environ.get("LOG_GROUP", Config.log_group),
        log_stream=os.environ.get("LOG_STREAM", Config.log_stream),
        options=options,
        flush_interval=parse_delay(delay_text),
        max_batch_size=parse_positive_int("MAX_BATCH_SIZE", max_batch_text, Config.max_batch_size),
        queue_size=parse_positive_int(
            "QUEUE_SIZE", os.environ.get("QUEUE_SIZE", str(Config.queue_size)), Config.queue_size,
        ),
        debug=debug,
    )
