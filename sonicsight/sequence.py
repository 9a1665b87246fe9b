"""Banded Dynamic Time Warping over MFCC frame sequences."""

from __future__ import annotations

import math

import numpy as np
from scipy.spatial.distance import cdist

from .constants import DTW_BAND_FRACTION, DTW_MIN_BAND


def band_width(n: int, m: int, *, fraction: float = DTW_BAND_FRACTION, minimum: int = DTW_MIN_BAND) -> int:
    """Return the Sakoe–Chiba band half-width for sequences of ``n`` and ``m`` frames."""
    return max(math.ceil(max(n, m) * fraction), minimum)


def dtw_distance(
    query: np.ndarray,
    reference: np.ndarray,
    *,
    metric: str = "euclidean",
    band_fraction: float = DTW_BAND_FRACTION,
    min_band: int = DTW_MIN_BAND,
) -> float:
    """Return the length-normalised DTW distance between two sequences.

    Only two rows of the cumulative cost grid are kept.  Row ``i`` admits
    the columns within ``band`` of ``round(i * m / n)``; everything outside
    the band is treated as infinitely expensive.  The band is centred
    relative to ``query``, so swapping the arguments may change the result
    slightly when the lengths differ.  Callers pass the live sequence first
    and the library sequence second.

    Args:
        query: ``(n, d)`` frame sequence, usually the live window.
        reference: ``(m, d)`` frame sequence, usually the calibrated sound.
        metric: Frame distance passed to :func:`scipy.spatial.distance.cdist`.
        band_fraction: Band half-width as a fraction of the longer sequence.
        min_band: Lower bound for the band half-width.

    Returns:
        Average per-step cost (bottom-right cumulative cost divided by
        ``max(n, m)``), or ``inf`` when either sequence is empty.
    """
    query = np.asarray(query, dtype=np.float64)
    reference = np.asarray(reference, dtype=np.float64)
    n, m = len(query), len(reference)
    if n == 0 or m == 0:
        return math.inf

    band = band_width(n, m, fraction=band_fraction, minimum=min_band)

    prev = np.full(m + 1, np.inf)
    curr = np.full(m + 1, np.inf)
    prev[0] = 0.0

    for i in range(1, n + 1):
        curr.fill(np.inf)
        # math.floor(x + 0.5) rounds halves up rather than to even.
        center = math.floor(i * m / n + 0.5)
        j_min = max(1, center - band)
        j_max = min(m, center + band)
        if j_min <= j_max:
            costs = cdist(query[i - 1 : i], reference[j_min - 1 : j_max], metric=metric)[0]
            for offset, j in enumerate(range(j_min, j_max + 1)):
                curr[j] = costs[offset] + min(prev[j], curr[j - 1], prev[j - 1])
        prev, curr = curr, prev

    return float(prev[m] / max(n, m))


__all__ = ["band_width", "dtw_distance"]
