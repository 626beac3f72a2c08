"""Serve one constant gauge in the Prometheus text exposition format."""

from __future__ import annotations

import argparse
import logging
import math
import re
from decimal import Decimal
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Sequence

logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"
METRICS_PATH = "/metrics"
DEFAULT_HELP = "Custom metric"

_METRIC_NAME = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")


def _format_value(value: float) -> str:
    """Format a sample value the way the Prometheus text format expects."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    _, digits, exponent = Decimal(repr(value)).normalize().as_tuple()
    num_digits = len(digits)
    decimal_point = num_digits + exponent
    if decimal_point - 1 < -4 or decimal_point - 1 >= 6:
        return f"{value:.{num_digits - 1}e}"
    return f"{value:.{max(num_digits - decimal_point, 0)}f}"


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def render_gauge(name: str, value: float, help_text: str) -> str:
    """Return the exposition text of a single gauge sample."""
    if not _METRIC_NAME.match(name):
        raise ValueError(f"{name!r} is not a valid metric name")
    return (
        f"# HELP {name} {_escape_help(help_text)}\n"
        f"# TYPE {name} gauge\n"
        f"{name} {_format_value(value)}\n"
    )


def build_server(port: int, metric_name: str, metric_value: float) -> ThreadingHTTPServer:
    """Return an HTTP server exposing the gauge at /metrics on ``port``."""
    body = render_gauge(metric_name, metric_value, DEFAULT_HELP).encode("utf-8")

    class _MetricsHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            if self.path.split("?", 1)[0] != METRICS_PATH:
                self.send_error(HTTPStatus.NOT_FOUND)
                return
            self.send_response(HTTPStatus.OK)
            self.send_header("Content-Type", CONTENT_TYPE)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args) -> None:
            logger.debug("%s - " + format, self.address_string(), *args)

    return ThreadingHTTPServer(("", port), _MetricsHandler)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prometheus-dummy-exporter",
        description="Expose a Prometheus gauge of constant value.",
    )
    parser.add_argument("-metric-name", "--metric-name", dest="metric_name", default="foo",
                        help="custom metric name")
    parser.add_argument("-metric-value", "--metric-value", dest="metric_value", type=int,
                        default=0, help="custom metric value")
    parser.add_argument("-port", "--port", dest="port", type=int, default=8080,
                        help="port to expose metrics on")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Serve the gauge until interrupted; return a process exit status."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    args = _build_parser().parse_args(None if argv is None else list(argv))
    logger.info("Starting to listen on :%d", args.port)
    try:
        server = build_server(args.port, args.metric_name, float(args.metric_value))
    except (ValueError, OSError) as exc:
        logger.error("Failed to start serving metrics: %s", exc)
        return 1
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0