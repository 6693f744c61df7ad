"""Ring buffer for recent CPU utilization samples.

Holds the last N samples (60 at the default 2s interval = 2 minutes).
The oldest sample is evicted first once the buffer is full.
"""

from collections import deque


class RingBuffer:
    """Bounded history of utilization fractions."""

    def __init__(self, max_samples: int = 60) -> None:
        if max_samples < 1:
            raise ValueError(f"max_samples must be >= 1, got {max_samples}")
        self._samples: deque[float] = deque(maxlen=max_samples)

    def __len__(self) -> int:
        """Return number of samples in buffer."""
        return len(self._samples)

    @property
    def is_empty(self) -> bool:
        """Return True if buffer has no samples."""
        return len(self._samples) == 0

    @property
    def capacity(self) -> int:
        """Return maximum number of samples the buffer can hold."""
        return self._samples.maxlen or 0

    def push(self, value: float) -> None:
        """Add a sample, evicting the oldest when full."""
        self._samples.append(value)

    def clear(self) -> None:
        """Empty the buffer."""
        self._samples.clear()

    def freeze(self) -> tuple[float, ...]:
        """Return immutable copy of buffer contents, oldest first."""
        return tuple(self._samples)
