"""GPU snapshot assembly: presence check, locate, query, parse, cache.

Nothing here raises to the caller. Every failure degrades to either an
empty snapshot or the last cached snapshot, and is reported through logs.
"""

import logging
from typing import Optional, Sequence, Set

from system_info_exporter.collectors.cache import GpuCache
from system_info_exporter.hardware.env import find_nvidia_smi_path, has_nvidia_gpu
from system_info_exporter.hardware.executor import TimedExecutor
from system_info_exporter.hardware.gpu import (
    COMPUTE_APPS_QUERY_ARGS,
    DEVICE_QUERY_ARGS,
    parse_compute_apps_output,
    parse_nvidia_smi_output,
    query_nvidia_smi,
)
from system_info_exporter.schema import DeviceRecord, DeviceSnapshot

LOGGER = logging.getLogger(__name__)


class GpuCollector:
    """Collect NVIDIA GPU snapshots with cache fallback.

    Attributes:
        cache: Shared last-known-good cache (one per process)
        executor: Timed executor used for nvidia-smi
        nvidia_smi_paths: Candidate nvidia-smi locations, in priority order
        presence_paths: Driver files whose existence gates all GPU work
    """

    def __init__(
        self,
        cache: GpuCache,
        executor: Optional[TimedExecutor] = None,
        nvidia_smi_paths: Optional[Sequence[str]] = None,
        presence_paths: Optional[Sequence[str]] = None,
    ):
        self.cache = cache
        self.executor = executor or TimedExecutor()
        self.nvidia_smi_paths = nvidia_smi_paths
        self.presence_paths = presence_paths

    def collect(self) -> DeviceSnapshot:
        """Run one acquisition cycle and return the snapshot to serve."""
        if not has_nvidia_gpu(self.presence_paths):
            LOGGER.debug("No NVIDIA GPU hardware detected, skipping GPU metrics collection")
            return DeviceSnapshot.empty()

        tool_path = find_nvidia_smi_path(self.nvidia_smi_paths)
        if tool_path is None:
            LOGGER.info("nvidia-smi not found, skipping GPU metrics collection")
            return DeviceSnapshot.empty()

        output = query_nvidia_smi(self.executor, tool_path, DEVICE_QUERY_ARGS)
        if output is None:
            LOGGER.warning("Failed to get GPU metrics from nvidia-smi, using cached data")
            return self.cache.read().snapshot

        devices = parse_nvidia_smi_output(output)
        if not devices:
            LOGGER.warning("nvidia-smi returned no GPU data, using cached data")
            return self.cache.read().snapshot

        used_uuids = self._query_used_uuids(tool_path, devices)
        snapshot = DeviceSnapshot.from_devices(devices, used_uuids)
        LOGGER.info(
            "Collected metrics for %d GPU(s), %d in use",
            snapshot.device_count,
            snapshot.used_count,
        )
        self.cache.update(snapshot)
        return snapshot

    def _query_used_uuids(self, tool_path: str, devices: Sequence[DeviceRecord]) -> Set[str]:
        """UUIDs of GPUs running compute processes; empty set if the query fails."""
        output = query_nvidia_smi(self.executor, tool_path, COMPUTE_APPS_QUERY_ARGS)
        if output is None:
            LOGGER.warning("Failed to query compute apps, returning 0 for gpu_used_count")
            return set()

        used = parse_compute_apps_output(output)
        known = {device.uuid for device in devices}
        unknown = used - known
        if unknown:
            LOGGER.debug("Ignoring compute apps on unknown GPU uuids: %s", sorted(unknown))
        return used & known
