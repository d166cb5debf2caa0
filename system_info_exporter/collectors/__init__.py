"""Collectors for system-info-exporter.

Modules
-------
cache         : last-known-good GPU snapshot guarded by a readers/writer lock
gpu_collector : one GPU acquisition cycle with cache fallback
node          : host + GPU merge used by the HTTP layer
"""

from system_info_exporter.collectors.cache import (
    CachedRead,
    CacheEntry,
    GpuCache,
    ReadWriteLock,
)
from system_info_exporter.collectors.gpu_collector import GpuCollector
from system_info_exporter.collectors.node import NodeCollector

__all__ = [
    "CachedRead",
    "CacheEntry",
    "GpuCache",
    "ReadWriteLock",
    "GpuCollector",
    "NodeCollector",
]
