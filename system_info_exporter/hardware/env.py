"""Environment and hardware availability checks."""

import logging
import os
import shutil
from typing import List, Optional, Sequence

LOGGER = logging.getLogger(__name__)

# Container paths (injected by the NVIDIA Container Toolkit) come before the
# host-mounted fallback, whose binary may not match the container's glibc.
NVIDIA_SMI_PATHS: List[str] = [
    "/usr/bin/nvidia-smi",
    "/usr/local/bin/nvidia-smi",
    "/host/usr/bin/nvidia-smi",
]

# Driver files that prove NVIDIA hardware is present on the node
NVIDIA_PRESENCE_PATHS: List[str] = [
    "/host/proc/driver/nvidia/version",
    "/proc/driver/nvidia/version",
    "/dev/nvidiactl",
]

HOST_MOUNT_PREFIX = "/host/"


def _path_exists(path: str) -> bool:
    try:
        return os.path.exists(path)
    except (OSError, ValueError):
        return False


def has_nvidia_gpu(paths: Optional[Sequence[str]] = None) -> bool:
    """Check for NVIDIA driver evidence on the host without spawning anything.

    Args:
        paths: Optional evidence paths to check; default is NVIDIA_PRESENCE_PATHS

    Returns:
        True if at least one evidence path exists
    """
    for path in paths or NVIDIA_PRESENCE_PATHS:
        if _path_exists(path):
            LOGGER.debug("NVIDIA GPU driver detected at %s", path)
            return True
    return False


def find_nvidia_smi_path(paths: Optional[Sequence[str]] = None) -> Optional[str]:
    """Return first path where nvidia-smi exists, or None."""
    candidates = list(paths or NVIDIA_SMI_PATHS)
    for path in candidates:
        if _path_exists(path):
            LOGGER.debug("Found nvidia-smi at %s", path)
            return path
    LOGGER.warning("nvidia-smi not found in any of: %s", candidates)
    return None


def is_host_mounted(path: str) -> bool:
    """True if ``path`` points into the host filesystem mount."""
    return path.startswith(HOST_MOUNT_PREFIX)


def find_timeout_command() -> Optional[str]:
    """Return the path of the coreutils ``timeout`` wrapper, or None."""
    return shutil.which("timeout")
