"""
Linear-acceleration sample sources.

Provides the ``AccelSample`` type shared by the whole pipeline, validation of
raw sensor payloads, and two sample sources:
    - SimulatedAccelCollector: deterministic synthetic locomotion signals
    - read_samples_csv: replay of a recorded x/y/z stream

Sensor registration with a host OS is outside this package; any producer that
can call ``SessionController.on_sensor_event`` with three floats can drive it.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class SampleValidationError(Exception):
    """Exception raised for malformed sensor events."""
    pass


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AccelSample:
    """A single tri-axial linear-acceleration sample (m/s^2)."""

    x: np.float32
    y: np.float32
    z: np.float32
    timestamp_ns: Optional[int] = None   # monotonic clock, when known

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


def coerce_sample(event: Union[AccelSample, Sequence[float], np.ndarray]) -> AccelSample:
    """
    Convert a raw sensor payload into an ``AccelSample``.

    Accepts an ``AccelSample`` unchanged, or any sequence / 1-D array of
    exactly three numbers.  Values are stored as float32; NaN and Inf are
    kept as-is.

    Raises
    ------
    SampleValidationError
        If the payload is not a three-component numeric vector.
    """
    if isinstance(event, AccelSample):
        return event
    if event is None or isinstance(event, (str, bytes)):
        raise SampleValidationError(f"Unsupported sensor payload: {event!r}")

    try:
        values = np.asarray(event, dtype=np.float32)
    except (TypeError, ValueError) as exc:
        raise SampleValidationError(f"Non-numeric sensor payload: {event!r}") from exc

    if values.shape != (3,):
        raise SampleValidationError(
            f"Sensor payload must have exactly 3 values [x, y, z], got shape {values.shape}"
        )

    return AccelSample(x=values[0], y=values[1], z=values[2], timestamp_ns=time.monotonic_ns())


def read_samples_csv(path: Union[str, Path]) -> List[AccelSample]:
    """
    Load a recorded acceleration stream.

    The file must have ``x``, ``y`` and ``z`` columns; a header-less file is
    read as three unnamed columns in that order.
    """
    df = pd.read_csv(path)
    if not {"x", "y", "z"}.issubset(df.columns):
        df = pd.read_csv(path, header=None)
        if df.shape[1] < 3:
            raise SampleValidationError(
                f"{path}: expected x, y, z columns, found {df.shape[1]} column(s)"
            )
        df = df.iloc[:, :3]
        df.columns = ["x", "y", "z"]

    values = df[["x", "y", "z"]].to_numpy(dtype=np.float32)
    return [AccelSample(x=row[0], y=row[1], z=row[2]) for row in values]


# ---------------------------------------------------------------------------
# Simulated collector (deterministic, for testing and demos)
# ---------------------------------------------------------------------------

# Gait model per activity: (step frequency Hz, vertical amplitude, lateral amplitude)
_GAIT_PROFILES = {
    "stationary": (0.0, 0.0, 0.0),
    "walking": (2.0, 1.5, 0.6),
    "running": (2.8, 6.0, 2.0),
}


class SimulatedAccelCollector:
    """
    Deterministic simulated linear-acceleration source.

    Generates a synthetic signal following a script of ``(activity, seconds)``
    segments.  Each activity is modelled as a sinusoidal gait oscillation on
    the vertical (z) axis with a half-frequency lateral sway on x, plus
    deterministic Gaussian noise from a seeded PRNG.

    Parameters
    ----------
    script : sequence of (str, float)
        Activity segments; activity is one of ``stationary``, ``walking``,
        ``running``.
    seed : int
        Random seed for deterministic output.
    sampling_interval_us : int
        Sample spacing in microseconds (default 20000, i.e. 50 Hz).
    noise_std : float
        Standard deviation of additive noise on every axis (default 0.05).
    """

    def __init__(
        self,
        script: Sequence[Tuple[str, float]],
        seed: int = 42,
        sampling_interval_us: int = 20000,
        noise_std: float = 0.05,
    ) -> None:
        for activity, seconds in script:
            if activity not in _GAIT_PROFILES:
                raise ValueError(
                    f"Unknown activity '{activity}', expected one of {sorted(_GAIT_PROFILES)}"
                )
            if seconds <= 0:
                raise ValueError(f"Segment duration must be positive, got {seconds}")

        self._script = list(script)
        self._seed = seed
        self._interval_us = sampling_interval_us
        self._noise_std = noise_std
        self._rng = np.random.default_rng(seed)

        self._running = False
        self._thread: Optional[threading.Thread] = None

    # -- public API ----------------------------------------------------------

    @property
    def sample_rate_hz(self) -> float:
        return 1_000_000.0 / self._interval_us

    @property
    def script(self) -> List[Tuple[str, float]]:
        return list(self._script)

    def activity_at(self, index: int) -> str:
        """Return the scripted activity for the sample at ``index``."""
        t = index / self.sample_rate_hz
        elapsed = 0.0
        for activity, seconds in self._script:
            elapsed += seconds
            if t < elapsed:
                return activity
        return self._script[-1][0]

    def total_samples(self) -> int:
        return int(round(sum(s for _, s in self._script) * self.sample_rate_hz))

    def generate_samples(self) -> List[AccelSample]:
        """
        Generate the whole script as a batch, without the background thread.

        Useful for unit tests that need a known signal without timing jitter.
        """
        self._rng = np.random.default_rng(self._seed)
        return [self._make_sample(i) for i in range(self.total_samples())]

    def start(self, callback: Callable[[AccelSample], None]) -> None:
        """Start the background producer thread, delivering each sample to ``callback``."""
        if self._running:
            return
        self._rng = np.random.default_rng(self._seed)
        self._running = True
        self._thread = threading.Thread(
            target=self._sample_loop, args=(callback,), daemon=True, name="sim-accel-collector"
        )
        self._thread.start()
        logger.info("SimulatedAccelCollector started at %.1f Hz", self.sample_rate_hz)

    def stop(self) -> None:
        self._running = False
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the script to finish playing."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    @property
    def is_running(self) -> bool:
        return self._running

    # -- internals -----------------------------------------------------------

    def _sample_loop(self, callback: Callable[[AccelSample], None]) -> None:
        interval = self._interval_us / 1_000_000.0
        n_samples = self.total_samples()
        index = 0
        while self._running and index < n_samples:
            t0 = time.monotonic()
            try:
                callback(self._make_sample(index))
            except Exception:
                logger.exception("Sample consumer raised; continuing")
            index += 1
            elapsed = time.monotonic() - t0
            sleep_time = max(0.0, interval - elapsed)
            if sleep_time > 0:
                time.sleep(sleep_time)
        self._running = False
        logger.info("SimulatedAccelCollector finished after %d samples", index)

    def _make_sample(self, index: int) -> AccelSample:
        """Build one deterministic sample."""
        t = index / self.sample_rate_hz
        freq, vertical_amp, lateral_amp = _GAIT_PROFILES[self.activity_at(index)]

        z = vertical_amp * math.sin(2.0 * math.pi * freq * t)
        x = lateral_amp * math.sin(math.pi * freq * t)
        y = 0.3 * vertical_amp * math.cos(2.0 * math.pi * freq * t)

        noise = self._rng.normal(0.0, self._noise_std, size=3)

        return AccelSample(
            x=np.float32(x + noise[0]),
            y=np.float32(y + noise[1]),
            z=np.float32(z + noise[2]),
            timestamp_ns=index * self._interval_us * 1000,
        )
