"""Entry point for the routing daemon."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from lb_controller.controller import LoadBalancerController
from lb_controller.models import build_model

from .config import DaemonConfig, load_config
from .consumer import ReconciliationLoop
from .handler import RoutingEventHandler
from .opts import load_oslo_config
from .subscriptions import create_subscription

LOG = logging.getLogger(__name__)

INI_SUFFIXES = (".conf", ".ini")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def read_config(path: Path) -> DaemonConfig:
    if path.suffix in INI_SUFFIXES:
        return load_oslo_config([path])
    return load_config(path)


def build_handler(config: DaemonConfig, controller: LoadBalancerController) -> RoutingEventHandler:
    return RoutingEventHandler(
        controller,
        config.names,
        create_routes=config.create_routes,
        monitor=config.monitor,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the load-balancer routing daemon")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/openshift/routing-daemon.yaml"),
        help="Path to the daemon configuration file (YAML, or INI for *.conf)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Process the messages currently queued and exit",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = read_config(args.config)

    model = build_model(config.backend)
    controller = LoadBalancerController.from_config(model, config.backend)
    LOG.info("Connecting to %s load balancer", config.backend.type)
    subscription = None
    try:
        controller.connect()

        subscription = create_subscription(config.subscription)
        stop_event = Event()
        loop = ReconciliationLoop(
            subscription,
            build_handler(config, controller),
            stop_event,
            interval=config.subscription.interval,
        )

        if args.once:
            processed = loop.drain()
            LOG.info("Processed %d queued message(s)", processed)
            return 0

        def _shutdown(signum, frame):  # pragma: no cover - signal handler
            LOG.info("received signal %s, shutting down", signum)
            stop_event.set()

        signal.signal(signal.SIGINT, _shutdown)
        signal.signal(signal.SIGTERM, _shutdown)

        loop.start()
        try:
            while not stop_event.is_set():
                stop_event.wait(1.0)
        except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
            stop_event.set()
        loop.join()
    finally:
        if subscription is not None:
            subscription.close()
        model.close()

    LOG.info("routing daemon stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
