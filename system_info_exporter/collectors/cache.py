"""Last-known-good GPU snapshot cache.

One ``GpuCache`` is created per process and handed to every request path.
The entry is replaced as a whole under the write lock, so readers see either
the previous snapshot or the new one, never a mix.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from system_info_exporter.schema import DeviceSnapshot

LOGGER = logging.getLogger(__name__)

DEFAULT_CACHE_MAX_AGE_SECONDS = 300


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Waiting writers block new readers so a steady stream of scrapes cannot
    starve cache updates.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class CacheEntry:
    """Most recent successful snapshot and when it was captured."""

    snapshot: DeviceSnapshot
    captured_at: float
    captured_wall_time: float
    success: bool


@dataclass(frozen=True)
class CachedRead:
    """Result of reading the cache.

    Attributes:
        snapshot: Cached snapshot (empty if the cache was never populated)
        age_seconds: Seconds since the snapshot was captured (0.0 when empty)
        stale: True if age exceeds the cache's max age
        populated: False while no successful acquisition has happened yet
        captured_wall_time: Epoch seconds of the capture (None when empty)
    """

    snapshot: DeviceSnapshot
    age_seconds: float
    stale: bool
    populated: bool
    captured_wall_time: Optional[float] = None


class GpuCache:
    """Thread-safe holder of the last successful GPU snapshot."""

    def __init__(
        self,
        max_age_seconds: float = DEFAULT_CACHE_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._lock = ReadWriteLock()
        self._entry: Optional[CacheEntry] = None

    def update(self, snapshot: DeviceSnapshot) -> None:
        """Replace the cached entry after a fully successful acquisition."""
        entry = CacheEntry(
            snapshot=snapshot,
            captured_at=self._clock(),
            captured_wall_time=time.time(),
            success=True,
        )
        with self._lock.write_locked():
            self._entry = entry

    def read(self) -> CachedRead:
        """Return the cached snapshot, flagging (not rejecting) stale data."""
        with self._lock.read_locked():
            entry = self._entry

        if entry is None or not entry.success or not entry.snapshot.devices:
            LOGGER.warning("No cached GPU data available")
            return CachedRead(
                snapshot=DeviceSnapshot.empty(),
                age_seconds=0.0,
                stale=False,
                populated=entry is not None and entry.success,
            )

        age = max(0.0, self._clock() - entry.captured_at)
        stale = age > self.max_age_seconds
        if stale:
            LOGGER.warning(
                "Using stale GPU cache data (%ds old, max %ds, captured %s)",
                age,
                self.max_age_seconds,
                time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(entry.captured_wall_time)),
            )
        else:
            LOGGER.info(
                "Using cached GPU data (%ds old) for %d GPU(s)",
                age,
                entry.snapshot.device_count,
            )
        return CachedRead(
            snapshot=entry.snapshot,
            age_seconds=age,
            stale=stale,
            populated=True,
            captured_wall_time=entry.captured_wall_time,
        )
