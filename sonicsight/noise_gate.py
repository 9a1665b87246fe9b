"""Silence detection and trimming for captured audio.

:func:`is_silent` is the live analyzer's silence gate.  The
calibration path uses :func:`trim_silence` to cut the quiet lead-in and
tail off a recording so the calibrated frame sequence only covers the
sound itself.
"""

from __future__ import annotations

import numpy as np

from .constants import HOP_SIZE, NOISE_GATE_MARGIN, SILENCE_GATE
from .features import rms


def is_silent(samples: np.ndarray, gate: float = SILENCE_GATE) -> bool:
    """Return ``True`` if the RMS level of ``samples`` is below ``gate``."""
    return rms(samples) < gate


def _block_levels(samples: np.ndarray, hop_size: int) -> tuple[list[np.ndarray], list[float]]:
    blocks = np.array_split(samples, max(1, samples.size // hop_size))
    return blocks, [rms(b) for b in blocks]


def calculate_noise_floor(samples: np.ndarray, hop_size: int = HOP_SIZE) -> float:
    """Median block RMS of ``samples``, or ``0.0`` for an empty buffer.

    A calibration take is mostly room tone around a short event, so the
    median block level tracks the background rather than the sound.
    """
    samples = np.asarray(samples).reshape(-1)
    if samples.size == 0:
        return 0.0
    _, levels = _block_levels(samples, hop_size)
    return float(np.median(levels))


def trim_silence(
    samples: np.ndarray,
    *,
    hop_size: int = HOP_SIZE,
    margin: float = NOISE_GATE_MARGIN,
) -> np.ndarray:
    """Remove leading and trailing silence from ``samples``.

    Blocks at either end whose RMS level falls below
    ``calculate_noise_floor(samples) * margin`` are discarded.  A recording
    with no measurable floor is returned unchanged; one with no block above
    the threshold comes back empty.
    """

    samples = np.asarray(samples).reshape(-1)
    if samples.size == 0:
        return samples

    threshold = calculate_noise_floor(samples, hop_size=hop_size) * margin
    if threshold <= 0.0:
        return samples

    blocks, levels = _block_levels(samples, hop_size)
    active = [i for i, level in enumerate(levels) if level >= threshold]
    if not active:
        return samples[:0]

    offsets = np.cumsum([0] + [b.size for b in blocks])
    return samples[offsets[active[0]] : offsets[active[-1] + 1]]


__all__ = ["is_silent", "calculate_noise_floor", "trim_silence"]
