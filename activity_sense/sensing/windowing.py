"""
Fixed-size framing of a continuous acceleration stream.

Samples are buffered until ``frame_size`` of them have arrived; the completed
frame is then copied out and the buffer starts over empty.  Frames never
overlap and are never emitted partially filled.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np

from activity_sense.sensing.accel_collector import AccelSample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """A completed analysis window of ``frame_size`` samples, oldest first."""

    index: int                 # 0-based sequence number within the accumulator's lifetime
    samples: np.ndarray        # shape (frame_size, 3), float32, read-only

    def __len__(self) -> int:
        return len(self.samples)


class FrameAccumulator:
    """
    Buffers tri-axial samples into fixed-size frames.

    Parameters
    ----------
    frame_size : int
        Number of samples per frame.
    """

    def __init__(self, frame_size: int) -> None:
        if frame_size <= 0:
            raise ValueError(f"frame_size must be > 0, got {frame_size}")
        self._frame_size = frame_size
        self._buffer = np.zeros((frame_size, 3), dtype=np.float32)
        self._count = 0
        self._frames_emitted = 0
        self._lock = threading.Lock()

    @property
    def frame_size(self) -> int:
        return self._frame_size

    @property
    def fill_level(self) -> int:
        """Samples currently buffered towards the next frame."""
        return self._count

    @property
    def frames_emitted(self) -> int:
        return self._frames_emitted

    def accept(self, sample: AccelSample) -> Optional[Frame]:
        """
        Append one sample; return the completed frame when it fills up.

        The returned frame owns a copy of the samples, so the caller may keep
        it while further samples are accepted.
        """
        with self._lock:
            self._buffer[self._count] = (sample.x, sample.y, sample.z)
            self._count += 1

            if self._count < self._frame_size:
                return None

            samples = self._buffer
            samples.flags.writeable = False
            frame = Frame(index=self._frames_emitted, samples=samples)

            self._buffer = np.zeros((self._frame_size, 3), dtype=np.float32)
            self._count = 0
            self._frames_emitted += 1

        logger.debug("Frame %d complete", frame.index)
        return frame

    def reset(self) -> None:
        """Discard any partially filled frame."""
        with self._lock:
            if self._count:
                logger.debug("Discarding partial frame of %d samples", self._count)
            self._buffer = np.zeros((self._frame_size, 3), dtype=np.float32)
            self._count = 0

    def __repr__(self) -> str:
        return (
            f"FrameAccumulator(frame_size={self._frame_size}, "
            f"buffered={self._count}, emitted={self._frames_emitted})"
        )
