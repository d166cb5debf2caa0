"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest

from system_info_exporter.schema import DeviceRecord, DeviceSnapshot, HostFacts, NodeMetrics


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeExecutor:
    """Stands in for TimedExecutor; responses are keyed by the query argument.

    A response is either the stdout string or an exception instance to raise.
    Lists of responses are consumed one per call (the last one repeats).
    """

    def __init__(self, responses: Dict[str, Union[str, Exception, List]]):
        self.responses = responses
        self.calls: List[Tuple[str, Tuple[str, ...]]] = []

    def run(self, tool_path, args: Sequence[str]) -> str:
        self.calls.append((tool_path, tuple(args)))
        response = self.responses[args[0]]
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_device(
    index: int = 0, name: str = "Tesla T4", uuid: Optional[str] = None, **overrides
) -> DeviceRecord:
    values = {
        "index": index,
        "name": name,
        "uuid": uuid or f"GPU-{index:08d}",
        "memory_total_mb": 15360,
        "memory_used_mb": 1024,
        "memory_free_mb": 14336,
        "utilization_percent": 45,
        "temperature_celsius": 52,
        "power_draw_watts": 70,
        "power_limit_watts": 70,
    }
    values.update(overrides)
    return DeviceRecord(**values)


def make_host(**overrides) -> HostFacts:
    values = {
        "hostname": "worker-1",
        "node": "worker-1",
        "os_name": "Ubuntu",
        "os_version": "22.04",
        "kernel_version": "5.15.0-91-generic",
        "uptime_secs": 3600,
        "cpu_cores": 8,
        "cpu_threads": 16,
        "cpu_model": "AMD EPYC 7B12",
        "cpu_usage_percent": 25.0,
        "memory_total_bytes": 64 * 1024**3,
        "memory_used_bytes": 16 * 1024**3,
        "memory_available_bytes": 48 * 1024**3,
    }
    values.update(overrides)
    return HostFacts(**values)


def make_node_metrics(
    devices: Sequence[DeviceRecord] = (), used_uuids=(), **host_overrides
) -> NodeMetrics:
    return NodeMetrics.from_parts(
        make_host(**host_overrides), DeviceSnapshot.from_devices(devices, used_uuids)
    )


@pytest.fixture
def fake_clock():
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def gpu_files(tmp_path: Path):
    """Create a driver evidence file and an nvidia-smi stand-in.

    Returns:
        (presence_paths, nvidia_smi_paths) pointing into tmp_path
    """
    presence = tmp_path / "version"
    presence.write_text("NVRM version: NVIDIA UNIX x86_64 Kernel Module  535.129.03\n")
    tool = tmp_path / "nvidia-smi"
    tool.write_text("#!/bin/sh\n")
    return [str(presence)], [str(tool)]


@pytest.fixture
def no_gpu_files(tmp_path: Path):
    """Evidence and tool paths that do not exist."""
    return [str(tmp_path / "missing-version")], [str(tmp_path / "missing-nvidia-smi")]


@pytest.fixture
def device_factory():
    """Build DeviceRecords with Tesla T4 defaults."""
    return make_device


@pytest.fixture
def node_metrics_factory():
    """Build NodeMetrics from a canned host and the given devices."""
    return make_node_metrics


@pytest.fixture
def executor_factory():
    """Build a FakeExecutor from {query argument: response}."""
    return FakeExecutor
