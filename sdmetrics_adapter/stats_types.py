"""Node and pod resource usage summaries in the kubelet stats format."""

import dataclasses
import functools
import json
import re
import types
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union, get_args, get_origin

SYSTEM_CONTAINER_KUBELET = "kubelet"
SYSTEM_CONTAINER_RUNTIME = "runtime"
SYSTEM_CONTAINER_MISC = "misc"
SYSTEM_CONTAINER_PODS = "pods"

_UINT64_MAX = 2**64 - 1

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


def _parse_time(text: Any) -> datetime:
    if not isinstance(text, str):
        raise ValueError(f"expected an RFC 3339 time string, got {text!r}")
    match = _RFC3339.match(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 time: {text!r}")
    date, clock, fraction, zone = match.groups()
    micros = (fraction or "").ljust(6, "0")[:6]
    if zone.upper() == "Z":
        zone = "+00:00"
    return datetime.fromisoformat(f"{date}T{clock}.{micros}{zone}")


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _f(json_name: str, *, omitempty: bool = False, default: Any = None, factory: Any = None):
    metadata = {"json": json_name, "omitempty": omitempty}
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and not value)


def _encode(value: Any) -> Any:
    if isinstance(value, _JsonObject):
        return value.to_dict()
    if isinstance(value, datetime):
        return _format_time(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_encode(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _encode(item) for key, item in value.items()}
    return value


def _decode(tp: Any, value: Any, where: str) -> Any:
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        if value is None:
            return None
        (inner,) = [arg for arg in get_args(tp) if arg is not type(None)]
        return _decode(inner, value, where)
    if origin is list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError(f"{where}: expected a list, got {value!r}")
        (item_type,) = get_args(tp)
        return [_decode(item_type, item, where) for item in value]
    if origin is dict:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError(f"{where}: expected an object, got {value!r}")
        _, value_type = get_args(tp)
        return {str(key): _decode(value_type, item, where) for key, item in value.items()}
    if tp is datetime:
        return _parse_time(value)
    if isinstance(tp, type) and issubclass(tp, _JsonObject):
        return tp.from_dict(value)
    if isinstance(tp, type) and issubclass(tp, Enum):
        try:
            return tp(value)
        except ValueError:
            raise ValueError(f"{where}: unknown {tp.__name__} {value!r}") from None
    if tp is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{where}: expected a number, got {value!r}")
        return float(value)
    if tp is int:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _UINT64_MAX:
            raise ValueError(f"{where}: expected an unsigned 64-bit integer, got {value!r}")
        return value
    if tp is str:
        if not isinstance(value, str):
            raise ValueError(f"{where}: expected a string, got {value!r}")
        return value
    raise TypeError(f"{where}: unsupported field type {tp!r}")


@functools.lru_cache(maxsize=None)
def _schema(cls: type) -> tuple:
    return tuple((f, f.type) for f in dataclasses.fields(cls))


class _JsonObject:
    """Conversion between dataclasses and their JSON object form."""

    def to_dict(self) -> dict:
        """Return the JSON object form, leaving out empty optional fields."""
        out = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if f.metadata["omitempty"] and _is_empty(value):
                continue
            out[f.metadata["json"]] = _encode(value)
        return out

    @classmethod
    def from_dict(cls, data: Any):
        """Build an instance from its JSON object form; unknown keys are ignored."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"{cls.__name__}: expected a JSON object, got {type(data).__name__}")
        kwargs = {}
        for f, tp in _schema(cls):
            key = f.metadata["json"]
            if key in data:
                kwargs[f.name] = _decode(tp, data[key], f"{cls.__name__}.{key}")
        return cls(**kwargs)


@dataclass
class PodReference(_JsonObject):
    """Enough information to locate a pod."""

    name: str = _f("name", default="")
    namespace: str = _f("namespace", default="")
    uid: str = _f("uid", default="")


@dataclass
class PVCReference(_JsonObject):
    """Enough information to locate a persistent volume claim."""

    name: str = _f("name", default="")
    namespace: str = _f("namespace", default="")


@dataclass
class CPUStats(_JsonObject):
    """CPU usage."""

    time: Optional[datetime] = _f("time")
    usage_nano_cores: Optional[int] = _f("usageNanoCores", omitempty=True)
    usage_core_nano_seconds: Optional[int] = _f("usageCoreNanoSeconds", omitempty=True)


@dataclass
class MemoryStats(_JsonObject):
    """Memory usage."""

    time: Optional[datetime] = _f("time")
    available_bytes: Optional[int] = _f("availableBytes", omitempty=True)
    usage_bytes: Optional[int] = _f("usageBytes", omitempty=True)
    working_set_bytes: Optional[int] = _f("workingSetBytes", omitempty=True)
    rss_bytes: Optional[int] = _f("rssBytes", omitempty=True)
    page_faults: Optional[int] = _f("pageFaults", omitempty=True)
    major_page_faults: Optional[int] = _f("majorPageFaults", omitempty=True)


@dataclass
class FsStats(_JsonObject):
    """Filesystem usage."""

    time: Optional[datetime] = _f("time")
    available_bytes: Optional[int] = _f("availableBytes", omitempty=True)
    capacity_bytes: Optional[int] = _f("capacityBytes", omitempty=True)
    used_bytes: Optional[int] = _f("usedBytes", omitempty=True)
    inodes_free: Optional[int] = _f("inodesFree", omitempty=True)
    inodes: Optional[int] = _f("inodes", omitempty=True)
    inodes_used: Optional[int] = _f("inodesUsed", omitempty=True)


@dataclass
class InterfaceStats(_JsonObject):
    """Traffic counters of one network interface."""

    name: str = _f("name", default="")
    rx_bytes: Optional[int] = _f("rxBytes", omitempty=True)
    rx_errors: Optional[int] = _f("rxErrors", omitempty=True)
    tx_bytes: Optional[int] = _f("txBytes", omitempty=True)
    tx_errors: Optional[int] = _f("txErrors", omitempty=True)


@dataclass
class NetworkStats(_JsonObject):
    """Network usage; the default interface's counters sit inline."""

    time: Optional[datetime] = _f("time")
    name: str = _f("name", default="")
    rx_bytes: Optional[int] = _f("rxBytes", omitempty=True)
    rx_errors: Optional[int] = _f("rxErrors", omitempty=True)
    tx_bytes: Optional[int] = _f("txBytes", omitempty=True)
    tx_errors: Optional[int] = _f("txErrors", omitempty=True)
    interfaces: list[InterfaceStats] = _f("interfaces", omitempty=True, factory=list)

    @property
    def default_interface(self) -> InterfaceStats:
        """The inline counters of the default interface."""
        return InterfaceStats(
            name=self.name,
            rx_bytes=self.rx_bytes,
            rx_errors=self.rx_errors,
            tx_bytes=self.tx_bytes,
            tx_errors=self.tx_errors,
        )


@dataclass
class RlimitStats(_JsonObject):
    """Process limits of the operating system."""

    time: Optional[datetime] = _f("time")
    max_pid: Optional[int] = _f("maxpid", omitempty=True)
    num_of_running_processes: Optional[int] = _f("curproc", omitempty=True)


@dataclass
class RuntimeStats(_JsonObject):
    """Stats of the container runtime."""

    image_fs: Optional[FsStats] = _f("imageFs", omitempty=True)


@dataclass
class AcceleratorStats(_JsonObject):
    """Stats of an accelerator attached to a container."""

    make: str = _f("make", default="")
    model: str = _f("model", default="")
    id: str = _f("id", default="")
    memory_total: int = _f("memoryTotal", default=0)
    memory_used: int = _f("memoryUsed", default=0)
    duty_cycle: int = _f("dutyCycle", default=0)


@dataclass
class VolumeStats(FsStats):
    """Filesystem usage of a volume; the filesystem fields sit inline."""

    name: str = _f("name", omitempty=True, default="")
    pvc_ref: Optional[PVCReference] = _f("pvcRef", omitempty=True)


class UserDefinedMetricType(str, Enum):
    """How a user defined metric is to be interpreted."""

    GAUGE = "gauge"
    CUMULATIVE = "cumulative"
    DELTA = "delta"


@dataclass
class UserDefinedMetricDescriptor(_JsonObject):
    """Metadata describing a user defined metric."""

    name: str = _f("name", default="")
    type: UserDefinedMetricType = _f("type", default=UserDefinedMetricType.GAUGE)
    units: str = _f("units", default="")
    labels: dict[str, str] = _f("labels", omitempty=True, factory=dict)


@dataclass
class UserDefinedMetric(UserDefinedMetricDescriptor):
    """A sample of a user defined metric; the descriptor fields sit inline."""

    time: Optional[datetime] = _f("time")
    value: float = _f("value", default=0.0)


@dataclass
class ContainerStats(_JsonObject):
    """Container-level sample stats."""

    name: str = _f("name", default="")
    start_time: Optional[datetime] = _f("startTime")
    cpu: Optional[CPUStats] = _f("cpu", omitempty=True)
    memory: Optional[MemoryStats] = _f("memory", omitempty=True)
    accelerators: list[AcceleratorStats] = _f("accelerators", omitempty=True, factory=list)
    rootfs: Optional[FsStats] = _f("rootfs", omitempty=True)
    logs: Optional[FsStats] = _f("logs", omitempty=True)
    user_defined_metrics: list[UserDefinedMetric] = _f(
        "userDefinedMetrics", omitempty=True, factory=list
    )


@dataclass
class PodStats(_JsonObject):
    """Pod-level sample stats."""

    pod_ref: PodReference = _f("podRef", factory=PodReference)
    start_time: Optional[datetime] = _f("startTime")
    containers: list[ContainerStats] = _f("containers", factory=list)
    cpu: Optional[CPUStats] = _f("cpu", omitempty=True)
    memory: Optional[MemoryStats] = _f("memory", omitempty=True)
    network: Optional[NetworkStats] = _f("network", omitempty=True)
    volume_stats: list[VolumeStats] = _f("volume", omitempty=True, factory=list)
    ephemeral_storage: Optional[FsStats] = _f("ephemeral-storage", omitempty=True)


@dataclass
class NodeStats(_JsonObject):
    """Node-level sample stats."""

    node_name: str = _f("nodeName", default="")
    system_containers: list[ContainerStats] = _f("systemContainers", omitempty=True, factory=list)
    start_time: Optional[datetime] = _f("startTime")
    cpu: Optional[CPUStats] = _f("cpu", omitempty=True)
    memory: Optional[MemoryStats] = _f("memory", omitempty=True)
    network: Optional[NetworkStats] = _f("network", omitempty=True)
    fs: Optional[FsStats] = _f("fs", omitempty=True)
    runtime: Optional[RuntimeStats] = _f("runtime", omitempty=True)
    rlimit: Optional[RlimitStats] = _f("rlimit", omitempty=True)


@dataclass
class Summary(_JsonObject):
    """Stats of a node and of the pods running on it."""

    node: NodeStats = _f("node", factory=NodeStats)
    pods: list[PodStats] = _f("pods", factory=list)

    def to_dict(self) -> dict:
        """Return the JSON object form of the summary."""
        return super().to_dict()

    @classmethod
    def from_dict(cls, data: Any) -> "Summary":
        """Build a summary from its JSON object form."""
        return super().from_dict(data)


def parse_summary(text: Union[str, bytes]) -> Summary:
    """Parse a JSON summary document."""
    return Summary.from_dict(json.loads(text))


def dump_summary(summary: Summary) -> str:
    """Serialise a summary to compact JSON."""
    return json.dumps(summary.to_dict(), separators=(",", ":"))