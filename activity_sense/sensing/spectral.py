"""
Frequency-domain summary of a single signal axis.

The series is zero-padded to the next power of two and run through an
unnormalised forward FFT (scipy.fft).  Two scalars are derived from the
*real* part of each bin only:

    energy  = sum(Re^2)
    entropy = sum(-p * ln p),  p = sqrt(|Re|) / n_bins

``entropy`` is not a normalised Shannon entropy; the deployed classifier was
trained on exactly this quantity, so it must not be changed.  Bins with
``p == 0`` contribute 0.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import fft as scipy_fft


@dataclass(frozen=True)
class SpectralSummary:
    """Energy and entropy of one axis."""

    energy: float
    entropy: float


def next_power_of_two(n: int) -> int:
    """Smallest power of two ``>= n`` (``1`` for ``n <= 1``)."""
    if n <= 1:
        return 1
    return 1 << (int(n) - 1).bit_length()


def real_spectrum(series: NDArray[np.floating]) -> NDArray[np.float64]:
    """Real part of the forward FFT of ``series`` zero-padded to a power of two."""
    x = np.asarray(series, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError(f"Expected a 1-D series, got shape {x.shape}")
    if x.size == 0:
        return np.zeros(0, dtype=np.float64)

    padded = np.zeros(next_power_of_two(x.size), dtype=np.float64)
    padded[: x.size] = x
    return scipy_fft.fft(padded).real


def spectral_energy(real_bins: NDArray[np.float64]) -> float:
    return float(np.sum(real_bins * real_bins))


def spectral_entropy(real_bins: NDArray[np.float64]) -> float:
    n_bins = real_bins.size
    if n_bins == 0:
        return 0.0

    p = np.sqrt(np.abs(real_bins)) / n_bins
    terms = np.zeros_like(p)
    # 0 * ln(0) is taken as its limit, 0; NaN bins still propagate
    nonzero = p != 0
    terms[nonzero] = -p[nonzero] * np.log(p[nonzero])
    return float(np.sum(terms))


def analyze(series: NDArray[np.floating]) -> SpectralSummary:
    """Compute :class:`SpectralSummary` for one axis of a frame."""
    bins = real_spectrum(series)
    return SpectralSummary(energy=spectral_energy(bins), entropy=spectral_entropy(bins))
