"""Write a custom metric of constant value to Stackdriver in a loop."""

from __future__ import annotations

import argparse
import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

import requests

from .options import _parse_bool

logger = logging.getLogger(__name__)

DEFAULT_METADATA_URL = "http://169.254.169.254/computeMetadata/v1/"
DEFAULT_MONITORING_ENDPOINT = "https://monitoring.googleapis.com/"
CUSTOM_METRIC_PREFIX = "custom.googleapis.com/"
EXPORT_INTERVAL = 5.0
OLD_MODEL_RESOURCE = "gke_container"
NEW_MODEL_RESOURCE = "k8s_pod"

_TOKEN_EXPIRY_MARGIN = 10.0


def _metadata_base_url() -> str:
    host = os.environ.get("GCE_METADATA_HOST")
    if host:
        return f"http://{host}/computeMetadata/v1/"
    return DEFAULT_METADATA_URL


class MetadataClient:
    """Reads instance and project information from the compute metadata server."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 5.0,
    ) -> None:
        self.base_url = (base_url or _metadata_base_url()).rstrip("/") + "/"
        self.session = session or requests.Session()
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expiry = 0.0

    def _get(self, suffix: str) -> str:
        response = self.session.get(
            self.base_url + suffix,
            headers={"Metadata-Flavor": "Google"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.text

    def project_id(self) -> str:
        """Return the project ID of the instance."""
        return self._get("project/project-id").strip()

    def zone(self) -> str:
        """Return the zone of the instance, such as ``us-central1-b``."""
        return self._get("instance/zone").strip().rpartition("/")[2]

    def instance_attribute(self, name: str) -> str:
        """Return the raw value of a custom instance attribute."""
        return self._get(f"instance/attributes/{name}")

    def access_token(self) -> str:
        """Return an OAuth access token of the default service account, cached until expiry."""
        now = time.monotonic()
        if self._token and now < self._token_expiry:
            return self._token
        data = json.loads(self._get("instance/service-accounts/default/token"))
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise ValueError("metadata server returned no access token")
        expires_in = float(data.get("expires_in", 0) or 0)
        self._token = token
        self._token_expiry = now + max(expires_in - _TOKEN_EXPIRY_MARGIN, 0.0)
        return token


class _TokenSource(Protocol):
    def access_token(self) -> str: ...


class MonitoringClient:
    """Minimal client of the monitoring API for writing time series."""

    def __init__(
        self,
        token_source: _TokenSource,
        endpoint: str = DEFAULT_MONITORING_ENDPOINT,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        self.token_source = token_source
        self.endpoint = endpoint.rstrip("/") + "/"
        self.session = session or requests.Session()
        self.timeout = timeout

    def create_time_series(self, project: str, request: Mapping[str, Any]) -> dict:
        """Write time series data; raise requests.HTTPError on failure."""
        response = self.session.post(
            f"{self.endpoint}v3/{project}/timeSeries",
            json=request,
            headers={"Authorization": f"Bearer {self.token_source.access_token()}"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json() if response.content else {}


def parse_metric_labels(arg: str) -> dict[str, str]:
    """Parse ``key=value`` pairs separated by commas."""
    labels = {}
    for label in arg.split(","):
        parts = label.split("=")
        if len(parts) < 2:
            raise ValueError(f"invalid metric label {label!r}: expected key=value")
        labels[parts[0]] = parts[1]
    return labels


def _or_empty(fetch: Callable[[], str]) -> str:
    try:
        return fetch()
    except (requests.RequestException, ValueError):
        return ""


def resource_labels_old_model(metadata: MetadataClient, pod_id: str) -> dict[str, str]:
    """Return labels of a ``gke_container`` monitored resource for the pod."""
    return {
        "project_id": _or_empty(metadata.project_id),
        "zone": _or_empty(metadata.zone),
        "cluster_name": _or_empty(lambda: metadata.instance_attribute("cluster-name")).strip(),
        # The metric belongs to the pod, so the container does not matter.
        "container_name": "",
        "pod_id": pod_id,
        "namespace_id": "default",
        "instance_id": "",
    }


def resource_labels_new_model(
    metadata: MetadataClient, namespace: str, name: str
) -> dict[str, str]:
    """Return labels of a ``k8s_pod`` monitored resource for the pod."""
    return {
        "project_id": _or_empty(metadata.project_id),
        "location": _or_empty(lambda: metadata.instance_attribute("cluster-location")).strip(),
        "cluster_name": _or_empty(lambda: metadata.instance_attribute("cluster-name")).strip(),
        "namespace_name": namespace,
        "pod_name": name,
    }


def _rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    text = moment.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        return text[: -len("+00:00")] + "Z"
    return text


def build_time_series_request(
    metric_name: str,
    metric_value: int,
    metric_labels: Mapping[str, str],
    monitored_resource: str,
    resource_labels: Mapping[str, str],
    end_time: datetime,
) -> dict:
    """Return the body of a create-time-series request with a single point."""
    return {
        "timeSeries": [
            {
                "metric": {
                    "type": CUSTOM_METRIC_PREFIX + metric_name,
                    "labels": dict(metric_labels),
                },
                "resource": {
                    "type": monitored_resource,
                    "labels": dict(resource_labels),
                },
                "points": [
                    {
                        "interval": {"endTime": _rfc3339(end_time)},
                        "value": {"int64Value": str(int(metric_value))},
                    }
                ],
            }
        ]
    }


def export_metric(
    client: MonitoringClient,
    metric_name: str,
    metric_value: int,
    metric_labels: Mapping[str, str],
    monitored_resource: str,
    resource_labels: Mapping[str, str],
) -> dict:
    """Write one point of the metric, stamped with the current time."""
    request = build_time_series_request(
        metric_name,
        metric_value,
        metric_labels,
        monitored_resource,
        resource_labels,
        datetime.now(timezone.utc),
    )
    project = f"projects/{resource_labels.get('project_id', '')}"
    return client.create_time_series(project, request)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sd-dummy-exporter",
        description="Export a custom metric of constant value to Stackdriver.",
    )

    def add(flag: str, **kwargs: Any) -> None:
        parser.add_argument(f"-{flag}", f"--{flag}", dest=flag.replace("-", "_"), **kwargs)

    def add_bool(flag: str, default: bool, help_text: str) -> None:
        add(flag, nargs="?", const=True, default=default, type=_parse_bool, help=help_text)

    add("pod-id", default="", help="pod id")
    add("namespace", default="", help="namespace")
    add("pod-name", default="", help="pod name")
    add("metric-name", default="foo", help="custom metric name")
    add("metric-value", type=int, default=0, help="custom metric value")
    add("metric-labels", default="bar=1", help="custom metric labels")
    add_bool("use-old-resource-model", True, "use old stackdriver resource model")
    add_bool("use-new-resource-model", False, "use new stackdriver resource model")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Export the metric every few seconds until interrupted."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    args = _build_parser().parse_args(None if argv is None else list(argv))

    if not args.pod_id and args.use_old_resource_model:
        logger.error("No pod id specified.")
        return 1
    if not args.pod_name and args.use_new_resource_model:
        logger.error("No pod name specified.")
        return 1
    if not args.namespace and args.use_new_resource_model:
        logger.error("No pod namespace specified.")
        return 1

    try:
        metric_labels = parse_metric_labels(args.metric_labels)
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    metadata = MetadataClient()
    client = MonitoringClient(metadata)
    old_model_labels = resource_labels_old_model(metadata, args.pod_id)
    new_model_labels = resource_labels_new_model(metadata, args.namespace, args.pod_name)

    targets = []
    if args.use_old_resource_model:
        targets.append(("old", OLD_MODEL_RESOURCE, old_model_labels))
    if args.use_new_resource_model:
        targets.append(("new", NEW_MODEL_RESOURCE, new_model_labels))

    try:
        while True:
            for model, resource, labels in targets:
                try:
                    export_metric(
                        client, args.metric_name, args.metric_value, metric_labels, resource, labels
                    )
                except (requests.RequestException, ValueError) as exc:
                    logger.warning(
                        "Failed to write time series data for %s resource model: %s", model, exc
                    )
                else:
                    logger.info(
                        "Finished writing time series for %s resource model with value: %s",
                        model,
                        args.metric_value,
                    )
            time.sleep(EXPORT_INTERVAL)
    except KeyboardInterrupt:
        return 0