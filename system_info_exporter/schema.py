"""Snapshot schema for system-info-exporter.

This module defines the records produced by one sampling cycle: per-GPU
device records, the GPU snapshot with its derived aggregates, host facts
from the host probe, and the merged node metrics served over HTTP.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

MIB = 1024 * 1024


@dataclass(frozen=True)
class DeviceRecord:
    """Point-in-time state of one NVIDIA GPU as reported by nvidia-smi."""

    index: int
    name: str
    uuid: str
    memory_total_mb: int
    memory_used_mb: int
    memory_free_mb: int
    utilization_percent: int
    temperature_celsius: int
    power_draw_watts: int
    power_limit_watts: int

    @property
    def memory_total_bytes(self) -> int:
        return self.memory_total_mb * MIB

    @property
    def memory_used_bytes(self) -> int:
        return self.memory_used_mb * MIB

    @property
    def memory_free_bytes(self) -> int:
        return self.memory_free_mb * MIB

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DeviceSnapshot:
    """All device records of one sampling cycle plus derived aggregates.

    Attributes:
        devices: Device records in nvidia-smi order
        type_counts: GPU name -> number of devices with that name (first-seen order)
        used_count: Number of devices with at least one running compute process
    """

    devices: Tuple[DeviceRecord, ...] = ()
    type_counts: Dict[str, int] = field(default_factory=dict)
    used_count: int = 0

    @property
    def device_count(self) -> int:
        return len(self.devices)

    @classmethod
    def empty(cls) -> "DeviceSnapshot":
        return cls()

    @classmethod
    def from_devices(
        cls,
        devices: Iterable[DeviceRecord],
        used_uuids: Optional[Iterable[str]] = None,
    ) -> "DeviceSnapshot":
        """Build a snapshot, deriving name grouping and used-device count.

        Args:
            devices: Parsed device records
            used_uuids: GPU uuids reported by the active-workload query; uuids
                that do not belong to one of ``devices`` are ignored

        Returns:
            DeviceSnapshot
        """
        records = tuple(devices)
        type_counts: Dict[str, int] = {}
        for device in records:
            type_counts[device.name] = type_counts.get(device.name, 0) + 1

        used = set(used_uuids or ())
        used_count = sum(1 for device in records if device.uuid in used)
        return cls(devices=records, type_counts=type_counts, used_count=used_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "devices": [device.to_dict() for device in self.devices],
            "type_counts": dict(self.type_counts),
            "used_count": self.used_count,
            "device_count": self.device_count,
        }


@dataclass
class HostFacts:
    """CPU, memory and OS facts sampled from the host."""

    hostname: str
    node: str
    os_name: str
    os_version: str
    kernel_version: str
    uptime_secs: int
    cpu_cores: int
    cpu_threads: int
    cpu_model: str
    cpu_usage_percent: float
    memory_total_bytes: int
    memory_used_bytes: int
    memory_available_bytes: int


@dataclass
class NodeMetrics:
    """Merged host and GPU metrics for one scrape."""

    hostname: str
    node: str
    os_name: str
    os_version: str
    kernel_version: str
    uptime_secs: int
    cpu_cores: int
    cpu_threads: int
    cpu_model: str
    cpu_usage_percent: float
    cpu_used_cores: float
    memory_total_bytes: int
    memory_used_bytes: int
    memory_available_bytes: int
    memory_usage_percent: float
    gpu_count: int
    gpu_used_count: int
    gpu_devices: List[DeviceRecord] = field(default_factory=list)
    gpu_type_counts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_parts(cls, host: HostFacts, gpu: DeviceSnapshot) -> "NodeMetrics":
        """Combine host facts and a GPU snapshot, computing derived values."""
        if host.memory_total_bytes > 0:
            memory_usage_percent = host.memory_used_bytes / host.memory_total_bytes * 100.0
        else:
            memory_usage_percent = 0.0

        return cls(
            hostname=host.hostname,
            node=host.node,
            os_name=host.os_name,
            os_version=host.os_version,
            kernel_version=host.kernel_version,
            uptime_secs=host.uptime_secs,
            cpu_cores=host.cpu_cores,
            cpu_threads=host.cpu_threads,
            cpu_model=host.cpu_model,
            cpu_usage_percent=host.cpu_usage_percent,
            cpu_used_cores=host.cpu_usage_percent / 100.0 * host.cpu_threads,
            memory_total_bytes=host.memory_total_bytes,
            memory_used_bytes=host.memory_used_bytes,
            memory_available_bytes=host.memory_available_bytes,
            memory_usage_percent=memory_usage_percent,
            gpu_count=gpu.device_count,
            gpu_used_count=gpu.used_count,
            gpu_devices=list(gpu.devices),
            gpu_type_counts=dict(gpu.type_counts),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return asdict(self)


@dataclass
class SystemMetrics:
    """Compact host summary served by the ``/metrics/json`` route."""

    cpu_usage: float
    memory_total: int
    memory_used: int
    memory_usage_percent: float
    hostname: str
    os_name: str
    os_version: str
    uptime: int

    @classmethod
    def from_node(cls, node: NodeMetrics) -> "SystemMetrics":
        return cls(
            cpu_usage=node.cpu_usage_percent,
            memory_total=node.memory_total_bytes,
            memory_used=node.memory_used_bytes,
            memory_usage_percent=node.memory_usage_percent,
            hostname=node.hostname,
            os_name=node.os_name,
            os_version=node.os_version,
            uptime=node.uptime_secs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
