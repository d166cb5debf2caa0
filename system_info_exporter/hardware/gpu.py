"""GPU queries and nvidia-smi CSV parsing."""

import logging
import math
from typing import List, Optional, Sequence, Set

from system_info_exporter.hardware.executor import TimedExecutor
from system_info_exporter.schema import DeviceRecord
from system_info_exporter.utils.errors import ToolError, ToolTimeoutError

LOGGER = logging.getLogger(__name__)

DEVICE_QUERY_FIELDS = [
    "index",
    "name",
    "uuid",
    "memory.total",
    "memory.used",
    "memory.free",
    "utilization.gpu",
    "temperature.gpu",
    "power.draw",
    "power.limit",
]
DEVICE_QUERY_ARGS = [
    f"--query-gpu={','.join(DEVICE_QUERY_FIELDS)}",
    "--format=csv,noheader,nounits",
]
COMPUTE_APPS_QUERY_ARGS = [
    "--query-compute-apps=gpu_uuid",
    "--format=csv,noheader",
]

_MEMORY_SUFFIXES = (" MiB", " MB", "MiB", "MB")


def query_nvidia_smi(
    executor: TimedExecutor,
    tool_path: Optional[str],
    args: Sequence[str],
) -> Optional[str]:
    """Execute an nvidia-smi query and return raw output, or None on failure.

    Every executor failure is logged here so callers only see None.
    """
    try:
        return executor.run(tool_path, args)
    except ToolTimeoutError as exc:
        LOGGER.warning("nvidia-smi command timed out (exit code %s): %s", exc.exit_code, exc)
    except ToolError as exc:
        LOGGER.warning("nvidia-smi query failed: %s", exc)
    return None


def _is_sentinel(value: str) -> bool:
    return "N/A" in value or "[" in value


def _to_non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        return 0
    return number if number >= 0 else 0


def parse_mib_value(value: str) -> int:
    """Parse a memory value such as ``24576`` or ``24576 MiB``."""
    text = value.strip()
    for suffix in _MEMORY_SUFFIXES:
        if text.endswith(suffix):
            text = text[: -len(suffix)]
            break
    return _to_non_negative_int(text.strip())


def parse_percent_value(value: str) -> int:
    """Parse a percentage such as ``45`` or ``45 %``; ``[N/A]`` is 0."""
    text = value.strip().replace("%", "").strip()
    if _is_sentinel(text):
        return 0
    return _to_non_negative_int(text)


def parse_int_value(value: str) -> int:
    text = value.strip()
    if _is_sentinel(text):
        return 0
    return _to_non_negative_int(text)


def parse_watts_value(value: str) -> int:
    """Parse watts such as ``150.00`` or ``150.00 W``, truncated to an int."""
    text = value.strip()
    if text.endswith("W"):
        text = text[:-1].strip()
    if _is_sentinel(text):
        return 0
    try:
        watts = float(text)
    except ValueError:
        return 0
    if not math.isfinite(watts) or watts < 0:
        return 0
    return int(watts)


def parse_device_line(line: str) -> Optional[DeviceRecord]:
    """Parse one CSV line of the device query.

    Args:
        line: ``index, name, uuid, memory.total, memory.used, memory.free,
            utilization.gpu, temperature.gpu, power.draw, power.limit``

    Returns:
        DeviceRecord, or None if the line has fewer than ten fields
    """
    fields = [part.strip() for part in line.split(",")]
    if len(fields) < len(DEVICE_QUERY_FIELDS):
        return None

    return DeviceRecord(
        index=_to_non_negative_int(fields[0]),
        name=fields[1],
        uuid=fields[2],
        memory_total_mb=parse_mib_value(fields[3]),
        memory_used_mb=parse_mib_value(fields[4]),
        memory_free_mb=parse_mib_value(fields[5]),
        utilization_percent=parse_percent_value(fields[6]),
        temperature_celsius=parse_int_value(fields[7]),
        power_draw_watts=parse_watts_value(fields[8]),
        power_limit_watts=parse_watts_value(fields[9]),
    )


def parse_nvidia_smi_output(output: str) -> List[DeviceRecord]:
    """Parse device query output into records, skipping malformed lines."""
    devices: List[DeviceRecord] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        record = parse_device_line(line)
        if record is None:
            LOGGER.warning("Invalid nvidia-smi output line: %s", line)
            continue
        devices.append(record)
    return devices


def parse_compute_apps_output(output: str) -> Set[str]:
    """Return the set of GPU uuids that have at least one compute process."""
    return {line.strip() for line in output.splitlines() if line.strip()}
