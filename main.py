"""Entry point for the CloudWatch Log Shipper."""

import logging
import queue
import signal
import sys
import threading

from cloudwatch_shipper.cloudwatch import LogsService, create_logs_client
from cloudwatch_shipper.collector import DockerLogCollector
from cloudwatch_shipper.config import load_config
from cloudwatch_shipper.errors import StartupError
from cloudwatch_shipper.metadata import DockerMetadataProvider, connect_docker
from cloudwatch_shipper.pipeline import ShippingPipeline


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logger = logging.getLogger(__name__)

    config = load_config()
    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    shutdown_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        client = connect_docker(config.docker_host)
        pipeline = ShippingPipeline(
            config,
            DockerMetadataProvider(client),
            LogsService(create_logs_client(config.region)),
            shutdown_event,
        )
    except StartupError as exc:
        logger.error("Startup failed: %s", exc)
        sys.exit(1)

    logger.info(
        "Starting CloudWatch Log Shipper: region=%s, docker=%s, delay=%.1fs",
        config.region, config.docker_host, config.flush_interval,
    )

    collector = DockerLogCollector(client, queue.Queue(maxsize=config.queue_size), shutdown_event)
    pipeline.start()
    collector.start()

    try:
        pipeline.stream(collector.records())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        collector.stop()
        pipeline.stop()


if __name__ == "__main__":
    main()
