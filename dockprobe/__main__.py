#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from internal.collector.probe import Prober
from internal.exporter.collector import build_registry
from internal.exporter.server import METRICS_PATH, make_metrics_server
from internal.scanner.docker_api import DEFAULT_SOCKET, DEFAULT_TIMEOUT, ProbeError, RuntimeClient
from internal.scanner.enumerate import EntityEnumerator
from internal.scanner.fanout import DEFAULT_MAX_CONCURRENCY, StatsAggregator

logger = logging.getLogger("dockprobe")

DEFAULT_PORT = 9417
DEFAULT_BIND = "0.0.0.0"


def _is_truthy(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value == "1" or value.strip().lower() == "true"


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return n


def _positive_float(value: str) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return n


def build_parser(environ: Optional[Mapping[str, str]] = None) -> argparse.ArgumentParser:
    env = os.environ if environ is None else environ

    p = argparse.ArgumentParser(
        prog="dockprobe",
        description="Dockprobe: expose Docker container, image and volume state as Prometheus metrics.",
    )
    p.add_argument(
        "--verbose",
        action="store_true",
        default=_is_truthy(env.get("VERBOSE")),
        help="Debug logging. Env: VERBOSE",
    )
    p.add_argument(
        "--collect-images",
        action="store_true",
        default=_is_truthy(env.get("COLLECT_IMAGE_METRICS")),
        help="Collect image metrics. Env: COLLECT_IMAGE_METRICS",
    )
    p.add_argument(
        "--collect-volumes",
        action="store_true",
        default=_is_truthy(env.get("COLLECT_VOLUME_METRICS")),
        help="Collect volume metrics. Env: COLLECT_VOLUME_METRICS",
    )
    p.add_argument(
        "--socket",
        default=env.get("DOCKER_SOCKET", DEFAULT_SOCKET),
        help="Path to the Docker API socket. Env: DOCKER_SOCKET",
    )
    p.add_argument(
        "--bind",
        default=env.get("BIND_ADDR", DEFAULT_BIND),
        help="Address to listen on. Env: BIND_ADDR",
    )
    p.add_argument(
        "--port",
        type=_positive_int,
        default=env.get("PORT", str(DEFAULT_PORT)),
        help="Port to listen on. Env: PORT",
    )
    p.add_argument(
        "--query-timeout",
        type=_positive_float,
        default=env.get("QUERY_TIMEOUT", str(DEFAULT_TIMEOUT)),
        help="Seconds before a single Docker query is abandoned. Env: QUERY_TIMEOUT",
    )
    p.add_argument(
        "--max-concurrency",
        type=_positive_int,
        default=env.get("MAX_CONCURRENT_QUERIES", str(DEFAULT_MAX_CONCURRENCY)),
        help="Maximum container queries in flight. Env: MAX_CONCURRENT_QUERIES",
    )
    return p


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def connect(args: argparse.Namespace) -> RuntimeClient:
    socket_path = Path(args.socket).expanduser()
    if not socket_path.exists():
        raise ProbeError(str(socket_path), "socket does not exist")

    client = RuntimeClient(
        socket_path=str(socket_path),
        timeout=args.query_timeout,
        pool_size=args.max_concurrency,
    )
    client.ping()
    return client


def build_prober(client: RuntimeClient, args: argparse.Namespace) -> Prober:
    enumerator = EntityEnumerator(
        client,
        collect_images=args.collect_images,
        collect_volumes=args.collect_volumes,
    )
    aggregator = StatsAggregator(client, max_concurrency=args.max_concurrency, timeout=args.query_timeout)
    return Prober(enumerator, aggregator)


def main(argv: list[str] | None = None, environ: Optional[Mapping[str, str]] = None) -> int:
    args = build_parser(environ).parse_args(argv)
    _configure_logging(args.verbose)

    try:
        client = connect(args)
    except ProbeError as e:
        print(f"Docker is not accessible at {args.socket}: {e}", file=sys.stderr)
        return 2

    logger.info(
        f"Connected to Docker API {client.api_version} at {client.socket_path}"
        f" (images={'on' if args.collect_images else 'off'}, volumes={'on' if args.collect_volumes else 'off'})"
    )

    registry = build_registry(build_prober(client, args))
    server = make_metrics_server(registry, args.bind, args.port)
    logger.info(f"Serving metrics at http://{args.bind}:{args.port}{METRICS_PATH}")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Exiting.")
    finally:
        server.server_close()
        client.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
