# sdmetrics-adapter

Pieces of a Kubernetes metrics adapter backed by Cloud Monitoring: its
command-line options, its API status errors and the kubelet stats summary
data model. Two small exporters publish a constant metric so that
autoscaling setups can be tried end to end.

## Installation

```
pip install sdmetrics-adapter
```

To run the test suite:

```
pip install "sdmetrics-adapter[test]"
pytest
```

## What is inside

### `sdmetrics_adapter.options`

`ServerOptions` is a dataclass holding the adapter's settings, and
`parse_server_options(argv)` fills it from command-line arguments:

| Flag | Default |
| --- | --- |
| `--use-new-resource-model` | `false` |
| `--enable-custom-metrics-api` | `true` |
| `--enable-external-metrics-api` | `true` |
| `--fallback-for-container-metrics` | `false` |
| `--enable-core-metrics-api` | `false` |
| `--list-full-custom-metrics` | `false` |
| `--metrics-address` | empty |
| `--stackdriver-endpoint` | empty |
| `--enable-distribution-support` | `false` |
| `--metric-kind-cache-size` | `0` |

Boolean flags may be given bare (`--use-new-resource-model`) or with a value
(`--enable-custom-metrics-api=false`); accepted values are `1`, `t`, `T`,
`TRUE`, `true`, `True` and `0`, `f`, `F`, `FALSE`, `false`, `False`.

`ServerOptions.validate()` raises `ValueError` when container fallback or
the core metrics API is enabled without the new resource model, or when
`stackdriver_endpoint` is set but is not a valid URL.

`validate_url(s)` returns `True` only for a string with both a scheme and a
host (`https://monitoring.googleapis.com` passes, `google.com` and `http://`
do not).

`truncate_metrics_list(metrics, list_full)` returns the whole list when
`list_full` is true and otherwise only its first element.

```python
from sdmetrics_adapter.options import parse_server_options

opts = parse_server_options(["--use-new-resource-model", "--enable-core-metrics-api"])
opts.validate()
```

### `sdmetrics_adapter.errors`

`StatusError` is an exception carrying `message`, `code`, `reason`,
`status` and `causes`; `as_status()` returns it as a `Status` object for an
API response body.

- `new_operation_not_supported_error(operation)` – code 501, reason
  `BadRequest`, message `Operation: "<operation>" is not implemented`.
- `new_internal_error(message)` – code 500, reason `InternalError`, message
  `Internal error occurred: <message>`.

### `sdmetrics_adapter.stats_types`

The kubelet stats summary as dataclasses: `Summary`, `NodeStats`,
`PodStats`, `ContainerStats`, `CPUStats`, `MemoryStats`, `FsStats`,
`NetworkStats`, `InterfaceStats`, `RlimitStats`, `RuntimeStats`,
`AcceleratorStats`, `VolumeStats`, `PodReference`, `PVCReference`,
`UserDefinedMetric`, `UserDefinedMetricDescriptor` and the
`UserDefinedMetricType` enum (`gauge`, `cumulative`, `delta`).

`parse_summary(text)` reads a JSON summary and `dump_summary(summary)`
writes one as compact JSON; `Summary.from_dict` and `Summary.to_dict` work
on the decoded form. Empty optional fields are left out on output, unknown
keys are ignored on input, times are RFC 3339 and are written in UTC to the
second, and counters must be unsigned 64-bit integers.

## Exporters

### Prometheus gauge

`sdmetrics_adapter.prometheus_exporter` serves one gauge of constant value
on `/metrics` in the Prometheus text format (help text `Custom metric`);
other paths answer 404.

```
sdmetrics-prometheus-exporter --metric-name foo --metric-value 40 --port 8080
```

Defaults: metric `foo`, value `0`, port `8080`. `render_gauge(name, value,
help_text)` returns the exposition text and raises `ValueError` for an
invalid metric name; `build_server(port, metric_name, metric_value)` returns
the HTTP server without starting it.

### Direct to Cloud Monitoring

`sdmetrics_adapter.sd_exporter` writes a constant custom metric
(`custom.googleapis.com/<name>`) every five seconds, labelled for the pod
it runs in. It expects to run on a GCE or GKE node: the project, zone,
cluster name and location, and an access token come from the instance
metadata server (`GCE_METADATA_HOST` overrides its address).

```
sdmetrics-sd-exporter --pod-id "$POD_ID" --metric-name foo --metric-value 40
sdmetrics-sd-exporter --use-old-resource-model=false --use-new-resource-model \
    --pod-name "$POD_NAME" --namespace "$NAMESPACE" --metric-labels bar=1
```

With the old resource model (the default) the series is written against
`gke_container` and `--pod-id` is required; with the new model it is written
against `k8s_pod` and `--pod-name` and `--namespace` are required. A missing
required flag ends the command with exit status 1. `--metric-labels` takes
comma-separated `key=value` pairs (default `bar=1`). Failed writes are
logged and retried on the next round.

The building blocks are usable on their own: `MetadataClient`,
`MonitoringClient.create_time_series(project, request)`,
`parse_metric_labels`, `resource_labels_old_model`,
`resource_labels_new_model`, `build_time_series_request` and
`export_metric`.

## What this package does not do

It does not run a metrics API server. There is no component that queries
Cloud Monitoring for pod or node CPU and memory, nor one that answers
custom or external metrics requests; `ServerOptions` only describes and
checks the settings such a server would take.