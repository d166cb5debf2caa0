"""Hardware probes: NVIDIA presence, nvidia-smi execution and parsing, host facts."""

from system_info_exporter.hardware.env import (
    NVIDIA_PRESENCE_PATHS,
    NVIDIA_SMI_PATHS,
    find_nvidia_smi_path,
    has_nvidia_gpu,
    is_host_mounted,
)
from system_info_exporter.hardware.executor import DEFAULT_TIMEOUT_SECONDS, TimedExecutor
from system_info_exporter.hardware.gpu import (
    COMPUTE_APPS_QUERY_ARGS,
    DEVICE_QUERY_ARGS,
    parse_compute_apps_output,
    parse_nvidia_smi_output,
    query_nvidia_smi,
)
from system_info_exporter.hardware.host import HostProbe

__all__ = [
    "NVIDIA_PRESENCE_PATHS",
    "NVIDIA_SMI_PATHS",
    "find_nvidia_smi_path",
    "has_nvidia_gpu",
    "is_host_mounted",
    "DEFAULT_TIMEOUT_SECONDS",
    "TimedExecutor",
    "COMPUTE_APPS_QUERY_ARGS",
    "DEVICE_QUERY_ARGS",
    "parse_compute_apps_output",
    "parse_nvidia_smi_output",
    "query_nvidia_smi",
    "HostProbe",
]
