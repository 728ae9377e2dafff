"""
Audio fragment primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class PlaybackFragment:
    """
    One decoded inbound audio fragment waiting in the playback queue.

    sequence_num:
        Monotonic per-queue counter assigned at enqueue time.
        Used for ordering assertions and debugging only.

    samples:
        Mono float32 samples in [-1.0, 1.0) at constants.OUTPUT_SAMPLE_RATE_HZ.

    ts_ms:
        Wall-clock timestamp (milliseconds) when the fragment was enqueued.
        Observability only (not control logic).
    """
    sequence_num: int
    samples: np.ndarray
    ts_ms: int

    @property
    def num_samples(self) -> int:
        return int(self.samples.shape[0])
