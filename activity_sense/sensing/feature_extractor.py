"""
Feature extraction from an augmented acceleration frame.

Turns an ``(N, 4)`` frame of ``x, y, z, magnitude`` rows into the fixed
22-element vector the activity classifier consumes:

    [ 0.. 3] mean            x, y, z, magnitude
    [ 4.. 7] variance (/N)   x, y, z, magnitude
    [ 8..13] Pearson r       (x,y) (y,z) (x,z) (mag,x) (mag,y) (mag,z)
    [14..17] spectral energy x, y, z, magnitude
    [18..21] spectral entropy x, y, z, magnitude

The order is part of the classifier's input contract.
"""

from __future__ import annotations

import logging
from dataclasses import astuple, dataclass, fields
from typing import List

import numpy as np
from numpy.typing import NDArray
from scipy import stats as scipy_stats

from activity_sense.sensing import spectral

logger = logging.getLogger(__name__)

FEATURE_COUNT = 22


# ---------------------------------------------------------------------------
# Feature dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActivityFeatures:
    """Named view of the 22-element feature vector, in vector order."""

    # -- means --------------------------------------------------------------
    mean_x: float = 0.0
    mean_y: float = 0.0
    mean_z: float = 0.0
    mean_magnitude: float = 0.0

    # -- population variances -----------------------------------------------
    var_x: float = 0.0
    var_y: float = 0.0
    var_z: float = 0.0
    var_magnitude: float = 0.0

    # -- correlations -------------------------------------------------------
    corr_xy: float = 0.0
    corr_yz: float = 0.0
    corr_xz: float = 0.0
    corr_magnitude_x: float = 0.0
    corr_magnitude_y: float = 0.0
    corr_magnitude_z: float = 0.0

    # -- spectral energy ----------------------------------------------------
    energy_x: float = 0.0
    energy_y: float = 0.0
    energy_z: float = 0.0
    energy_magnitude: float = 0.0

    # -- spectral entropy ---------------------------------------------------
    entropy_x: float = 0.0
    entropy_y: float = 0.0
    entropy_z: float = 0.0
    entropy_magnitude: float = 0.0

    def to_vector(self) -> NDArray[np.float32]:
        """Return the classifier input vector (float32, length 22)."""
        return np.asarray(astuple(self), dtype=np.float32)

    @classmethod
    def from_vector(cls, vector: NDArray[np.floating]) -> "ActivityFeatures":
        values = np.asarray(vector, dtype=np.float64).ravel()
        if values.size != FEATURE_COUNT:
            raise ValueError(f"Expected {FEATURE_COUNT} features, got {values.size}")
        return cls(*(float(v) for v in values))


FEATURE_NAMES: List[str] = [f.name for f in fields(ActivityFeatures)]


# ---------------------------------------------------------------------------
# Feature extractor
# ---------------------------------------------------------------------------

class FrameFeatureExtractor:
    """
    Extract statistical, correlation and spectral features from one frame.

    Stateless; a single instance may be shared between worker threads.
    """

    def extract(self, augmented: NDArray[np.floating]) -> NDArray[np.float32]:
        """Return the 22-element float32 feature vector for ``augmented``."""
        return self.extract_features(augmented).to_vector()

    def extract_features(self, augmented: NDArray[np.floating]) -> ActivityFeatures:
        """Return the named features for an ``(N, 4)`` augmented frame."""
        frame = np.asarray(augmented, dtype=np.float64)
        if frame.ndim != 2 or frame.shape[1] != 4 or frame.shape[0] == 0:
            raise ValueError(f"Expected a non-empty (N, 4) augmented frame, got shape {frame.shape}")

        x, y, z, mag = frame[:, 0], frame[:, 1], frame[:, 2], frame[:, 3]
        spectra = [spectral.analyze(axis) for axis in (x, y, z, mag)]

        return ActivityFeatures(
            mean_x=_mean(x),
            mean_y=_mean(y),
            mean_z=_mean(z),
            mean_magnitude=_mean(mag),
            var_x=population_variance(x),
            var_y=population_variance(y),
            var_z=population_variance(z),
            var_magnitude=population_variance(mag),
            corr_xy=pearson_correlation(x, y),
            corr_yz=pearson_correlation(y, z),
            corr_xz=pearson_correlation(x, z),
            corr_magnitude_x=pearson_correlation(mag, x),
            corr_magnitude_y=pearson_correlation(mag, y),
            corr_magnitude_z=pearson_correlation(mag, z),
            energy_x=spectra[0].energy,
            energy_y=spectra[1].energy,
            energy_z=spectra[2].energy,
            energy_magnitude=spectra[3].energy,
            entropy_x=spectra[0].entropy,
            entropy_y=spectra[1].entropy,
            entropy_z=spectra[2].entropy,
            entropy_magnitude=spectra[3].entropy,
        )


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def _mean(values: NDArray[np.float64]) -> float:
    return float(np.mean(values))


def population_variance(values: NDArray[np.float64]) -> float:
    """Variance dividing by N."""
    return float(np.var(values, ddof=0))


def pearson_correlation(a: NDArray[np.float64], b: NDArray[np.float64]) -> float:
    """
    Pearson correlation coefficient of ``a`` and ``b``.

    Computed with ``scipy.stats.pearsonr``.  Returns 0.0 when either series
    is constant or holds a non-finite value.
    """
    if a.size < 2 or not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        return 0.0
    if np.ptp(a) == 0.0 or np.ptp(b) == 0.0:
        return 0.0
    r = scipy_stats.pearsonr(a, b)[0]
    return float(r) if np.isfinite(r) else 0.0
