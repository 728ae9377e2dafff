"""
Output device contract.

PlaybackQueue talks to the speaker only through AudioOutput, so tests can
substitute a fake device and drive render completion by hand.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

import numpy as np


class PlaybackError(Exception):
    """Raised when the output device cannot start or continue a render."""


class RenderHandle(ABC):
    """One in-flight render of one fragment."""

    @abstractmethod
    def stop(self) -> None:
        """
        Hard-stop the render.

        After stop() returns, the render's completion callback must not fire.
        Must be idempotent.
        """
        raise NotImplementedError


class AudioOutput(ABC):
    """
    Abstract output device.

    Contract:
    - render() starts playing `samples` and returns immediately.
    - `on_complete` is invoked exactly once, ON THE EVENT LOOP THREAD, when
      the render finishes naturally. It is never invoked after stop().
    - render() raises PlaybackError if the render cannot be started.
    """

    @abstractmethod
    def render(
        self,
        samples: np.ndarray,
        on_complete: Callable[[], None],
    ) -> RenderHandle:
        raise NotImplementedError

    def close(self) -> None:
        """Release device resources. Default: nothing to release."""
        return None
