# internal/exporter/server.py

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import CollectorRegistry, make_wsgi_app
from prometheus_client.exposition import ThreadingWSGIServer

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]


class _LoggingHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:
        logger.debug(f"{self.address_string()} {format % args}")


def make_app(registry: CollectorRegistry) -> WSGIApp:
    metrics_app = make_wsgi_app(registry)

    def app(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        if environ.get("PATH_INFO") != METRICS_PATH:
            start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
            return [b"Not Found\n"]
        # Every scrape exposes the whole catalog; name[] filtering is not offered.
        return metrics_app(dict(environ, QUERY_STRING=""), start_response)

    return app


def make_metrics_server(registry: CollectorRegistry, addr: str, port: int) -> WSGIServer:
    return make_server(addr, port, make_app(registry), ThreadingWSGIServer, handler_class=_LoggingHandler)
