"""Command-line options of the metrics adapter server."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Sequence, TypeVar
from urllib.parse import urlsplit

T = TypeVar("T")

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


@dataclass
class ServerOptions:
    """Settings that select which metrics APIs the adapter serves and how."""

    use_new_resource_model: bool = False
    enable_custom_metrics_api: bool = True
    enable_external_metrics_api: bool = True
    fallback_for_container_metrics: bool = False
    enable_core_metrics_api: bool = False
    metrics_address: str = ""
    stackdriver_endpoint: str = ""
    enable_distribution_support: bool = False
    list_full_custom_metrics: bool = False
    metric_kind_cache_size: int = 0

    def validate(self) -> None:
        """Raise ValueError if the options are inconsistent."""
        if not self.use_new_resource_model and self.fallback_for_container_metrics:
            raise ValueError("Container metrics work only with new resource model")
        if not self.use_new_resource_model and self.enable_core_metrics_api:
            raise ValueError("Core metrics work only with new resource model")
        if self.stackdriver_endpoint and not validate_url(self.stackdriver_endpoint):
            raise ValueError(
                f"Provided StackdriverEndpoint {self.stackdriver_endpoint} is not correct url"
            )


def validate_url(s: str) -> bool:
    """Return True if ``s`` parses as a URL with both a scheme and a host."""
    try:
        parts = urlsplit(s)
    except ValueError:
        return False
    host = parts.netloc.rpartition("@")[2]
    return bool(parts.scheme) and bool(host)


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _build_parser() -> argparse.ArgumentParser:
    defaults = ServerOptions()
    parser = argparse.ArgumentParser(prog="custom-metrics-stackdriver-adapter")

    def add_bool(flag: str, dest: str, help_text: str) -> None:
        parser.add_argument(
            flag,
            dest=dest,
            nargs="?",
            const=True,
            default=getattr(defaults, dest),
            type=_parse_bool,
            help=help_text,
        )

    add_bool("--use-new-resource-model", "use_new_resource_model",
             "whether to use new Stackdriver resource model")
    add_bool("--enable-custom-metrics-api", "enable_custom_metrics_api",
             "whether to enable Custom Metrics API")
    add_bool("--enable-external-metrics-api", "enable_external_metrics_api",
             "whether to enable External Metrics API")
    add_bool("--fallback-for-container-metrics", "fallback_for_container_metrics",
             "fall back to k8s_container resource when a metric is not present on k8s_pod")
    add_bool("--enable-core-metrics-api", "enable_core_metrics_api",
             "Experimental, do not use. Whether to enable Core Metrics API.")
    add_bool("--list-full-custom-metrics", "list_full_custom_metrics",
             "list all custom metrics during discovery instead of only one")
    parser.add_argument("--metrics-address", dest="metrics_address", default="",
                        help="endpoint with port on which the Prometheus metrics server runs")
    parser.add_argument("--stackdriver-endpoint", dest="stackdriver_endpoint", default="",
                        help="Stackdriver endpoint used by the adapter")
    add_bool("--enable-distribution-support", "enable_distribution_support",
             "enables support for scaling based on distribution values")
    parser.add_argument("--metric-kind-cache-size", dest="metric_kind_cache_size", type=int,
                        default=defaults.metric_kind_cache_size,
                        help="size of the cache for metric kind lookups; 0 disables it")
    return parser


def parse_server_options(argv: Sequence[str] | None = None) -> ServerOptions:
    """Parse command-line arguments into ServerOptions."""
    namespace = _build_parser().parse_args(None if argv is None else list(argv))
    return ServerOptions(**vars(namespace))


def truncate_metrics_list(metrics: Sequence[T], list_full: bool) -> list[T]:
    """Return all metrics, or only the first one unless ``list_full`` is set."""
    if not list_full and metrics:
        return list(metrics[:1])
    return list(metrics)