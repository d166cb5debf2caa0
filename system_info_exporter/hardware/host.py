"""Host CPU, memory and OS facts via psutil."""

import logging
import os
import platform
import socket
import threading
import time
from typing import Mapping, Optional, Sequence, Tuple

import psutil

from system_info_exporter.schema import HostFacts

LOGGER = logging.getLogger(__name__)

# Host mount first so a containerized exporter reports the node's OS
OS_RELEASE_PATHS = ["/host/etc/os-release", "/etc/os-release"]
CPUINFO_PATH = "/proc/cpuinfo"
UNKNOWN = "unknown"


def parse_os_release(path: str) -> Optional[Tuple[str, str]]:
    """Read NAME and VERSION_ID from an os-release file.

    Returns:
        (os_name, os_version), or None if the file is unreadable or lacks either key
    """
    try:
        with open(path, encoding="utf-8") as handle:
            content = handle.read()
    except OSError:
        return None

    name = None
    version = None
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if line.startswith("NAME="):
            name = line[len("NAME="):].strip('"')
        elif line.startswith("VERSION_ID="):
            version = line[len("VERSION_ID="):].strip('"')
        if name is not None and version is not None:
            return name, version
    return None


def get_host_os_info(paths: Optional[Sequence[str]] = None) -> Tuple[str, str]:
    """Return (os_name, os_version), falling back to the running kernel's platform."""
    for path in paths or OS_RELEASE_PATHS:
        parsed = parse_os_release(path)
        if parsed is not None:
            return parsed
    return platform.system() or UNKNOWN, platform.version() or UNKNOWN


def get_cpu_model(path: str = CPUINFO_PATH) -> str:
    try:
        with open(path, encoding="utf-8") as handle:
            for line in handle:
                key, _, value = line.partition(":")
                if key.strip() in ("model name", "Model") and value.strip():
                    return value.strip()
    except OSError:
        pass
    return platform.processor() or UNKNOWN


class HostProbe:
    """Samples host facts; keeps psutil's CPU-usage baseline between calls.

    psutil computes CPU usage as the delta since the previous call, so one
    probe instance lives for the whole process and sampling is serialized.
    """

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        os_release_paths: Optional[Sequence[str]] = None,
    ):
        self._env = os.environ if env is None else env
        self._os_release_paths = os_release_paths
        self._lock = threading.Lock()
        self._cpu_model: Optional[str] = None
        # Prime the baseline so the first scrape reports a real delta
        psutil.cpu_percent(interval=None)

    def sample(self) -> HostFacts:
        with self._lock:
            cpu_usage = float(psutil.cpu_percent(interval=None))
            memory = psutil.virtual_memory()

        if self._cpu_model is None:
            self._cpu_model = get_cpu_model()

        hostname = socket.gethostname() or UNKNOWN
        os_name, os_version = get_host_os_info(self._os_release_paths)
        try:
            uptime = max(0, int(time.time() - psutil.boot_time()))
        except (OSError, RuntimeError) as exc:
            LOGGER.debug("Could not read boot time: %s", exc)
            uptime = 0

        return HostFacts(
            hostname=hostname,
            node=self._env.get("NODE_NAME") or hostname,
            os_name=os_name,
            os_version=os_version,
            kernel_version=platform.release() or UNKNOWN,
            uptime_secs=uptime,
            cpu_cores=psutil.cpu_count(logical=False) or 0,
            cpu_threads=psutil.cpu_count(logical=True) or 0,
            cpu_model=self._cpu_model,
            cpu_usage_percent=cpu_usage,
            memory_total_bytes=int(memory.total),
            memory_used_bytes=int(memory.total - memory.available),
            memory_available_bytes=int(memory.available),
        )
