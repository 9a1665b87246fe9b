"""MFCC feature extraction.

The chain is framing -> Hann window -> radix-2 FFT magnitude -> mel
filterbank -> log -> DCT-II.  Every step is a pure function of its inputs
so features computed during calibration and during live listening are
directly comparable.  The DCT is unnormalised; the matcher constants
assume that scaling.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterator

import numpy as np

from .constants import (
    FRAME_SIZE,
    HOP_SIZE,
    LOG_FLOOR,
    MEL_MAX_FREQ,
    MEL_MIN_FREQ,
    NUM_MEL_FILTERS,
    NUM_MFCC,
    SAMPLE_RATE,
)


# ─── Framing & windowing ────────────────────────────────────────────────────


def frame_signal(
    samples: np.ndarray,
    frame_size: int = FRAME_SIZE,
    hop_size: int = HOP_SIZE,
) -> Iterator[np.ndarray]:
    """Yield overlapping frames of ``samples``.

    Frames start at ``0, hop_size, 2 * hop_size, ...`` and only complete
    frames are produced, so a buffer shorter than ``frame_size`` yields
    nothing.
    """
    if frame_size <= 0 or hop_size <= 0:
        raise ValueError("frame_size and hop_size must be positive")
    start = 0
    while start + frame_size <= len(samples):
        yield samples[start : start + frame_size]
        start += hop_size


@lru_cache(maxsize=8)
def hann_window(length: int) -> np.ndarray:
    """Return the symmetric Hann window ``0.5 * (1 - cos(2*pi*i/(N-1)))``."""
    if length == 1:
        window = np.ones(1)
    else:
        i = np.arange(length)
        window = 0.5 * (1.0 - np.cos(2.0 * np.pi * i / (length - 1)))
    window.setflags(write=False)
    return window


def apply_hann(frame: np.ndarray) -> np.ndarray:
    """Return ``frame`` multiplied by a Hann window of the same length."""
    return np.asarray(frame, dtype=np.float64) * hann_window(frame.shape[-1])


# ─── FFT (radix-2 Cooley–Tukey) ─────────────────────────────────────────────


@lru_cache(maxsize=8)
def _bit_reversal_permutation(n: int) -> np.ndarray:
    bits = n.bit_length() - 1
    idx = np.arange(n)
    rev = np.zeros(n, dtype=np.intp)
    for b in range(bits):
        rev |= ((idx >> b) & 1) << (bits - 1 - b)
    rev.setflags(write=False)
    return rev


def fft_in_place(real: np.ndarray, imag: np.ndarray) -> None:
    """Transform ``real``/``imag`` in place along the last axis.

    A bit-reversal permutation is followed by ``log2(N)`` butterfly stages
    with twiddle factors ``exp(-2j*pi*k/len)``.  Leading axes are treated as
    a batch of independent frames.

    Args:
        real: Float64 array whose last dimension is a power of two.
        imag: Float64 array of the same shape as ``real``.

    Raises:
        ValueError: If the transform length is not a power of two.
    """
    n = real.shape[-1]
    if n < 1 or n & (n - 1):
        raise ValueError(f"FFT length must be a power of two, got {n}")
    if imag.shape != real.shape:
        raise ValueError("real and imag must have the same shape")
    if not (real.flags.c_contiguous and imag.flags.c_contiguous):
        raise ValueError("real and imag must be C-contiguous")

    rev = _bit_reversal_permutation(n)
    real[...] = real[..., rev]
    imag[...] = imag[..., rev]

    batch = real.shape[:-1]
    size = 2
    while size <= n:
        half = size // 2
        angle = -2.0 * np.pi * np.arange(half) / size
        w_re = np.cos(angle)
        w_im = np.sin(angle)

        re = real.reshape(batch + (n // size, size))
        im = imag.reshape(batch + (n // size, size))
        even_re = re[..., :half].copy()
        even_im = im[..., :half].copy()
        odd_re = re[..., half:]
        odd_im = im[..., half:]

        t_re = w_re * odd_re - w_im * odd_im
        t_im = w_re * odd_im + w_im * odd_re

        re[..., half:] = even_re - t_re
        im[..., half:] = even_im - t_im
        re[..., :half] = even_re + t_re
        im[..., :half] = even_im + t_im
        size *= 2


def fft_magnitude(frame: np.ndarray) -> np.ndarray:
    """Return ``|FFT(frame)|`` for bins ``0..N/2`` inclusive.

    ``frame`` may be a single frame or a ``(n_frames, N)`` stack.
    """
    real = np.array(frame, dtype=np.float64, copy=True, order="C")
    imag = np.zeros_like(real)
    fft_in_place(real, imag)
    half = real.shape[-1] // 2 + 1
    return np.sqrt(real[..., :half] ** 2 + imag[..., :half] ** 2)


# ─── Mel filterbank ─────────────────────────────────────────────────────────


def hz_to_mel(hz):
    """Convert frequency in Hertz to mels."""
    return 2595.0 * np.log10(1.0 + np.asarray(hz, dtype=np.float64) / 700.0)


def mel_to_hz(mel):
    """Convert mels back to Hertz."""
    return 700.0 * (10.0 ** (np.asarray(mel, dtype=np.float64) / 2595.0) - 1.0)


class MelFilterbank:
    """Triangular filters equally spaced on the mel scale.

    Parameters
    ----------
    fft_size:
        Length of the FFT frames the filterbank will be applied to.
    sample_rate:
        Sampling frequency in hertz.
    num_filters:
        Number of triangular filters.
    min_freq, max_freq:
        Frequency floor and ceiling of the filterbank in hertz.

    Attributes
    ----------
    bin_points:
        ``num_filters + 2`` FFT bin indices of the filter edges and centres.
    filters:
        ``(num_filters, fft_size // 2 + 1)`` weight matrix.
    """

    def __init__(
        self,
        fft_size: int = FRAME_SIZE,
        sample_rate: int = SAMPLE_RATE,
        num_filters: int = NUM_MEL_FILTERS,
        min_freq: float = MEL_MIN_FREQ,
        max_freq: float = MEL_MAX_FREQ,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.fft_size = fft_size
        self.sample_rate = sample_rate
        self.num_filters = num_filters

        n_bins = fft_size // 2 + 1
        mel_min = float(hz_to_mel(min_freq))
        mel_max = float(hz_to_mel(max_freq))
        mel_points = mel_min + np.arange(num_filters + 2) * (mel_max - mel_min) / (num_filters + 1)
        self.bin_points = np.floor((fft_size + 1) * mel_to_hz(mel_points) / sample_rate).astype(int)

        filters = np.zeros((num_filters, n_bins))
        for i in range(num_filters):
            left, center, right = self.bin_points[i : i + 3]
            # Bins past Nyquist (max_freq above sample_rate / 2) are ignored.
            for k in range(left, min(center, n_bins)):
                filters[i, k] = (k - left) / (center - left)
            if right == center:
                if center < n_bins:
                    filters[i, center] = 1.0
                continue
            for k in range(center, min(right, n_bins - 1) + 1):
                filters[i, k] = (right - k) / (right - center)
        filters.setflags(write=False)
        self.filters = filters

    def apply(self, spectrum: np.ndarray) -> np.ndarray:
        """Return one mel energy per filter for ``spectrum`` (or a stack)."""
        return np.asarray(spectrum, dtype=np.float64) @ self.filters.T


@lru_cache(maxsize=8)
def mel_filterbank(
    fft_size: int = FRAME_SIZE,
    sample_rate: int = SAMPLE_RATE,
    num_filters: int = NUM_MEL_FILTERS,
    min_freq: float = MEL_MIN_FREQ,
    max_freq: float = MEL_MAX_FREQ,
) -> MelFilterbank:
    """Return a cached :class:`MelFilterbank` for the given configuration."""
    return MelFilterbank(fft_size, sample_rate, num_filters, min_freq, max_freq)


# ─── Cepstral transform ─────────────────────────────────────────────────────


@lru_cache(maxsize=8)
def dct_matrix(num_coeffs: int = NUM_MFCC, num_filters: int = NUM_MEL_FILTERS) -> np.ndarray:
    """Return the unnormalised DCT-II matrix ``cos(pi*k*(n+0.5)/N)``."""
    k = np.arange(num_coeffs)[:, None]
    n = np.arange(num_filters)[None, :]
    matrix = np.cos(np.pi * k * (n + 0.5) / num_filters)
    matrix.setflags(write=False)
    return matrix


def cepstral_transform(mel_energies: np.ndarray, num_coeffs: int = NUM_MFCC) -> np.ndarray:
    """Return MFCCs for ``mel_energies`` (last axis is the filter axis).

    Energies are floored at ``LOG_FLOOR`` before the log so that silent
    frames stay finite.
    """
    mel_energies = np.asarray(mel_energies, dtype=np.float64)
    log_mel = np.log(np.maximum(mel_energies, LOG_FLOOR))
    return log_mel @ dct_matrix(num_coeffs, mel_energies.shape[-1]).T


# ─── Public API ─────────────────────────────────────────────────────────────


def extract_mfcc_frames(
    samples: np.ndarray,
    sample_rate: int,
    *,
    frame_size: int = FRAME_SIZE,
    hop_size: int = HOP_SIZE,
    num_mfcc: int = NUM_MFCC,
) -> np.ndarray:
    """Return the per-frame MFCC vectors of ``samples``.

    Args:
        samples: One-dimensional array of audio samples.
        sample_rate: Sampling rate of ``samples`` in Hertz.
        frame_size: Analysis frame length (power of two).
        hop_size: Distance between consecutive frame starts.
        num_mfcc: Number of coefficients per frame.

    Returns:
        Array shaped ``(n_frames, num_mfcc)``.  ``n_frames`` is zero when
        ``samples`` is shorter than one frame.
    """
    samples = np.asarray(samples, dtype=np.float64).reshape(-1)
    frames = list(frame_signal(samples, frame_size, hop_size))
    if not frames:
        return np.zeros((0, num_mfcc))

    stack = apply_hann(np.stack(frames))
    spectrum = fft_magnitude(stack)
    mel_energies = mel_filterbank(frame_size, int(sample_rate)).apply(spectrum)
    return cepstral_transform(mel_energies, num_mfcc)


def rms(samples: np.ndarray) -> float:
    """Return the root-mean-square level of ``samples`` (``0.0`` if empty)."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples**2)))


def zero_crossing_rate(samples: np.ndarray) -> float:
    """Return sign changes between consecutive samples per sample.

    A sample counts as positive when it is ``>= 0``.
    """
    samples = np.asarray(samples, dtype=np.float64).reshape(-1)
    if samples.size == 0:
        return 0.0
    positive = samples >= 0
    crossings = int(np.count_nonzero(positive[1:] != positive[:-1]))
    return crossings / samples.size


__all__ = [
    "frame_signal",
    "hann_window",
    "apply_hann",
    "fft_in_place",
    "fft_magnitude",
    "hz_to_mel",
    "mel_to_hz",
    "MelFilterbank",
    "mel_filterbank",
    "dct_matrix",
    "cepstral_transform",
    "extract_mfcc_frames",
    "rms",
    "zero_crossing_rate",
]
