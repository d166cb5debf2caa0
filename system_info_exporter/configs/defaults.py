"""Default configuration for system-info-exporter."""

from dataclasses import dataclass, field

from system_info_exporter.collectors.cache import DEFAULT_CACHE_MAX_AGE_SECONDS
from system_info_exporter.hardware.env import NVIDIA_PRESENCE_PATHS, NVIDIA_SMI_PATHS
from system_info_exporter.hardware.executor import (
    DEFAULT_HOST_LIBRARY_PATH,
    DEFAULT_TIMEOUT_SECONDS,
)


@dataclass
class ServerSettings:
    """HTTP listener."""

    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class MetricsEnabled:
    """Per-family switches for the Prometheus exposition."""

    # Node
    node_info: bool = True
    node_uptime: bool = True

    # CPU
    cpu_cores: bool = True
    cpu_threads: bool = True
    cpu_usage: bool = True
    cpu_used_cores: bool = True

    # Memory
    memory_total: bool = True
    memory_used: bool = True
    memory_available: bool = True
    memory_usage: bool = True

    # GPU
    gpu_count: bool = True
    gpu_used_count: bool = True
    gpu_type_count: bool = True
    gpu_memory_total: bool = True
    gpu_memory_used: bool = True
    gpu_memory_free: bool = True
    gpu_utilization: bool = True
    gpu_temperature: bool = True
    gpu_power_draw: bool = True
    gpu_power_limit: bool = True


@dataclass
class MetricsSettings:
    """Configuration for metric exposition."""

    enabled: MetricsEnabled = field(default_factory=MetricsEnabled)


@dataclass
class GpuSettings:
    """Configuration for nvidia-smi acquisition."""

    timeout_seconds: float = float(DEFAULT_TIMEOUT_SECONDS)
    cache_max_age_seconds: float = float(DEFAULT_CACHE_MAX_AGE_SECONDS)
    nvidia_smi_paths: list = field(default_factory=lambda: list(NVIDIA_SMI_PATHS))
    presence_paths: list = field(default_factory=lambda: list(NVIDIA_PRESENCE_PATHS))
    host_library_path: str = DEFAULT_HOST_LIBRARY_PATH
