"""Per-sample preprocessing: append the acceleration magnitude as a fourth column."""

from __future__ import annotations

from typing import Union

import numpy as np
from numpy.typing import NDArray

from activity_sense.sensing.windowing import Frame


def preprocess(frame: Union[Frame, NDArray[np.float32]]) -> NDArray[np.float32]:
    """
    Return an ``(N, 4)`` float32 array of ``x, y, z, magnitude`` rows.

    Sample order is preserved.  Non-finite inputs propagate unchanged.
    """
    samples = frame.samples if isinstance(frame, Frame) else np.asarray(frame, dtype=np.float32)
    if samples.ndim != 2 or samples.shape[1] != 3:
        raise ValueError(f"Expected an (N, 3) frame, got shape {samples.shape}")

    x, y, z = samples[:, 0], samples[:, 1], samples[:, 2]
    magnitude = np.sqrt(x * x + y * y + z * z)
    augmented = np.column_stack((samples, magnitude)).astype(np.float32, copy=False)
    augmented.flags.writeable = False
    return augmented
