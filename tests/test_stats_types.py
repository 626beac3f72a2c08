import copy
from datetime import datetime, timezone

import pytest

from sdmetrics_adapter.stats_types import (
    CPUStats,
    NetworkStats,
    PodStats,
    Summary,
    UserDefinedMetric,
    UserDefinedMetricType,
    dump_summary,
    parse_summary,
)

T1 = "2017-01-02T13:01:00Z"
T2 = "2017-01-02T13:02:00Z"

SAMPLE = {
    "node": {
        "nodeName": "node1",
        "systemContainers": [{"name": "kubelet", "startTime": T1}],
        "startTime": T1,
        "cpu": {"time": T2, "usageNanoCores": 0, "usageCoreNanoSeconds": 5000},
        "memory": {"time": T2, "workingSetBytes": 1024},
        "network": {
            "time": T2,
            "name": "eth0",
            "rxBytes": 10,
            "interfaces": [{"name": "eth0", "rxBytes": 10}],
        },
        "rlimit": {"time": T2, "maxpid": 100, "curproc": 5},
    },
    "pods": [
        {
            "podRef": {"name": "pod1", "namespace": "namespace1", "uid": "uid-1"},
            "startTime": T1,
            "containers": [
                {
                    "name": "cont1",
                    "startTime": T1,
                    "accelerators": [
                        {
                            "make": "nvidia",
                            "model": "tesla-k80",
                            "id": "gpu-0",
                            "memoryTotal": 2048,
                            "memoryUsed": 1024,
                            "dutyCycle": 50,
                        }
                    ],
                    "userDefinedMetrics": [
                        {
                            "name": "qps",
                            "type": "gauge",
                            "units": "count",
                            "time": T2,
                            "value": 1.5,
                        }
                    ],
                }
            ],
            "volume": [
                {
                    "time": T2,
                    "usedBytes": 7,
                    "name": "data",
                    "pvcRef": {"name": "claim", "namespace": "namespace1"},
                }
            ],
            "ephemeral-storage": {"time": T2, "usedBytes": 3},
        }
    ],
}


def test_from_dict_reads_nested_fields():
    summary = Summary.from_dict(SAMPLE)
    assert summary.node.node_name == "node1"
    assert summary.node.cpu.usage_nano_cores == 0
    assert summary.node.cpu.usage_core_nano_seconds == 5000
    assert summary.node.rlimit.num_of_running_processes == 5
    assert summary.node.system_containers[0].name == "kubelet"
    pod = summary.pods[0]
    assert pod.pod_ref.namespace == "namespace1"
    assert pod.volume_stats[0].used_bytes == 7
    assert pod.volume_stats[0].pvc_ref.name == "claim"
    assert pod.ephemeral_storage.used_bytes == 3
    container = pod.containers[0]
    assert container.accelerators[0].duty_cycle == 50
    assert container.user_defined_metrics[0].type is UserDefinedMetricType.GAUGE
    assert container.user_defined_metrics[0].value == 1.5


def test_times_are_timezone_aware():
    summary = Summary.from_dict(SAMPLE)
    assert summary.node.start_time == datetime(2017, 1, 2, 13, 1, tzinfo=timezone.utc)


def test_dict_round_trip_is_exact():
    original = copy.deepcopy(SAMPLE)
    assert Summary.from_dict(SAMPLE).to_dict() == original


def test_json_round_trip():
    summary = Summary.from_dict(SAMPLE)
    assert parse_summary(dump_summary(summary)) == summary


def test_omitempty_keeps_zero_but_drops_missing():
    encoded = CPUStats(usage_nano_cores=0).to_dict()
    assert encoded["usageNanoCores"] == 0
    assert "usageCoreNanoSeconds" not in encoded
    assert encoded["time"] is None


def test_offset_time_is_written_in_utc():
    cpu = CPUStats.from_dict({"time": "2017-01-02T14:01:00+01:00"})
    assert cpu.to_dict()["time"] == T1


def test_fractional_seconds_are_parsed():
    cpu = CPUStats.from_dict({"time": "2017-01-02T13:01:00.123456789Z"})
    assert cpu.time.microsecond == 123456
    assert cpu.to_dict()["time"] == T1


def test_null_lists_become_empty():
    pod = PodStats.from_dict({"containers": None})
    assert pod.containers == []
    assert pod.to_dict()["containers"] == []


def test_default_interface_matches_inline_fields():
    network = Summary.from_dict(SAMPLE).node.network
    assert network.default_interface == network.interfaces[0]


def test_inline_descriptor_fields_of_user_metric():
    metric = UserDefinedMetric(name="qps", labels={"a": "b"}, value=2.0)
    encoded = metric.to_dict()
    assert encoded["labels"] == {"a": "b"}
    assert UserDefinedMetric.from_dict(encoded) == metric


def test_unknown_keys_are_ignored():
    network = NetworkStats.from_dict({"name": "eth1", "extra": 1})
    assert network.name == "eth1"


def test_negative_counter_is_rejected():
    with pytest.raises(ValueError):
        CPUStats.from_dict({"usageNanoCores": -1})


def test_unknown_metric_type_is_rejected():
    with pytest.raises(ValueError):
        UserDefinedMetric.from_dict({"type": "histogram"})


def test_invalid_time_is_rejected():
    with pytest.raises(ValueError):
        CPUStats.from_dict({"time": "yesterday"})


def test_non_object_is_rejected():
    with pytest.raises(ValueError):
        Summary.from_dict([1, 2])


def test_invalid_json_is_rejected():
    with pytest.raises(ValueError):
        parse_summary("not json")