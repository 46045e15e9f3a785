"""Counting of currently and peak allocated memory."""

from __future__ import annotations

import threading


class AllocationCounter:
    """Thread-safe tracker of the current and peak number of allocated bytes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current = 0
        self._peak = 0

    def allocate(self, size: int) -> None:
        """Records an allocation of ``size`` bytes."""
        if size < 0:
            raise ValueError("allocation size must not be negative")
        with self._lock:
            self._current += size
            self._peak = max(self._peak, self._current)

    def deallocate(self, size: int) -> None:
        """Records the release of ``size`` bytes."""
        if size < 0:
            raise ValueError("deallocation size must not be negative")
        with self._lock:
            if size > self._current:
                raise ValueError(
                    f"cannot release {size} bytes, only {self._current} are allocated"
                )
            self._current -= size

    def current(self) -> int:
        """Currently allocated bytes."""
        with self._lock:
            return self._current

    def peak(self) -> int:
        """Peak allocated bytes since creation."""
        with self._lock:
            return self._peak


def peak_allocated_memory(counter: AllocationCounter | None) -> int | None:
    """Returns the peak of the counter, or None if no counter is in use."""
    if counter is None:
        return None
    return counter.peak()