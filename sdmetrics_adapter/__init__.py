"""Adapter options, status errors and kubelet stats types, with two metric exporters."""

__version__ = "0.15.2"

__all__ = [
    "errors",
    "options",
    "prometheus_exporter",
    "sd_exporter",
    "stats_types",
]