"""HTTP surface: health, Prometheus and JSON routes over a threading server."""

import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlsplit

from prometheus_client import CONTENT_TYPE_LATEST

from system_info_exporter import __version__
from system_info_exporter.collectors.node import NodeCollector
from system_info_exporter.configs.config import Settings
from system_info_exporter.configs.defaults import MetricsEnabled
from system_info_exporter.reporting.prometheus import render_prometheus

LOGGER = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
HEALTH_PATHS = ("/health", "/healthz", "/ready")

Response = Tuple[int, str, bytes]


class ExporterServer(ThreadingHTTPServer):
    """Threading HTTP server carrying the collector and exposition switches."""

    daemon_threads = True

    def __init__(
        self,
        address: Tuple[str, int],
        node_collector: NodeCollector,
        enabled: Optional[MetricsEnabled] = None,
    ):
        super().__init__(address, ExporterRequestHandler)
        self.node_collector = node_collector
        self.enabled = enabled or MetricsEnabled()


def _json_response(status: int, payload: Dict[str, Any]) -> Response:
    return status, JSON_CONTENT_TYPE, json.dumps(payload).encode("utf-8")


class ExporterRequestHandler(BaseHTTPRequestHandler):
    """Routes GET requests; every route samples the node synchronously."""

    server: ExporterServer
    server_version = f"system-info-exporter/{__version__}"

    def do_GET(self) -> None:  # noqa: N802
        path = urlsplit(self.path).path
        handler = self._routes().get(path)
        if handler is None:
            response = _json_response(404, {"error": f"Not found: {path}"})
        else:
            try:
                response = handler()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.exception("Failed to serve %s", path)
                response = _json_response(500, {"error": str(exc)})
        self._send(*response)

    def _routes(self) -> Dict[str, Callable[[], Response]]:
        routes: Dict[str, Callable[[], Response]] = {
            path: self._health for path in HEALTH_PATHS
        }
        routes["/metrics"] = self._metrics
        routes["/metrics/json"] = self._metrics_json
        routes["/node"] = self._node
        return routes

    def _health(self) -> Response:
        return _json_response(200, {"status": "healthy", "version": __version__})

    def _metrics(self) -> Response:
        metrics = self.server.node_collector.collect()
        body = render_prometheus(metrics, self.server.enabled)
        return 200, CONTENT_TYPE_LATEST, body.encode("utf-8")

    def _metrics_json(self) -> Response:
        return _json_response(200, self.server.node_collector.collect_summary().to_dict())

    def _node(self) -> Response:
        return _json_response(200, self.server.node_collector.collect().to_dict())

    def _send(self, status: int, content_type: str, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:  # pylint: disable=redefined-builtin
        LOGGER.debug("%s - %s", self.address_string(), format % args)


def create_server(settings: Settings, node_collector: NodeCollector) -> ExporterServer:
    """Bind the exporter to ``settings.server.host``:``settings.server.port``.

    Args:
        settings: Effective settings (listener address and metric switches)
        node_collector: Collector sampled on every request

    Returns:
        Bound server, not yet serving
    """
    address = (settings.server.host, settings.server.port)
    return ExporterServer(address, node_collector, settings.enabled)


def serve(settings: Settings, node_collector: NodeCollector) -> None:
    """Serve until interrupted, then close the listening socket."""
    server = create_server(settings, node_collector)
    host, port = server.server_address[:2]
    LOGGER.info("Starting server on %s:%s", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        LOGGER.info("Shutting down")
    finally:
        server.server_close()
