# backend/audio/queues.py
"""
Playback fragment queue with canonical depth measurement.

- Strict FIFO: dequeue order == enqueue order == service delivery order
- Unbounded: inbound audio is never dropped for capacity reasons
- Depth measured in seconds of audio (fragments vary in length)
- Deterministic, synchronous behavior
"""

from __future__ import annotations
from collections import deque
from typing import Deque, Optional

from audio.frames import PlaybackFragment
from constants import OUTPUT_SAMPLE_RATE_HZ


class FragmentQueue:
    """
    FIFO queue of decoded PlaybackFragments awaiting render.

    Owned exclusively by PlaybackQueue. No locking: the single event loop
    is the only producer and the only consumer.
    """

    def __init__(self, *, sample_rate_hz: int = OUTPUT_SAMPLE_RATE_HZ) -> None:
        if sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")

        self._sample_rate_hz: int = sample_rate_hz
        self._fragments: Deque[PlaybackFragment] = deque()
        self._queued_samples: int = 0

    # -------------------------
    # Core queue operations
    # -------------------------

    def enqueue(self, fragment: PlaybackFragment) -> None:
        """Append a fragment at the tail."""
        self._fragments.append(fragment)
        self._queued_samples += fragment.num_samples

    def dequeue(self) -> Optional[PlaybackFragment]:
        """
        Dequeue the oldest fragment.

        Returns None if queue is empty.
        """
        if not self._fragments:
            return None
        fragment = self._fragments.popleft()
        self._queued_samples -= fragment.num_samples
        return fragment

    def peek(self) -> Optional[PlaybackFragment]:
        """View the oldest fragment without removing it."""
        return self._fragments[0] if self._fragments else None

    def clear(self) -> int:
        """
        Drop all queued fragments.

        Used by hard stops. Returns the number discarded.
        """
        discarded = len(self._fragments)
        self._fragments.clear()
        self._queued_samples = 0
        return discarded

    # -------------------------
    # Introspection helpers
    # -------------------------

    def __len__(self) -> int:
        return len(self._fragments)

    def is_empty(self) -> bool:
        """Check if the queue is empty."""
        return not self._fragments

    def depth_seconds(self) -> float:
        """Queued audio duration in seconds."""
        return self._queued_samples / self._sample_rate_hz

    def snapshot(self) -> dict[str, float | int]:
        """
        Lightweight snapshot for logging.
        """
        return {
            "fragments": len(self._fragments),
            "depth_s": self.depth_seconds(),
        }
