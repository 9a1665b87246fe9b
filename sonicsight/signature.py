"""Audio signatures: the fingerprint a calibrated sound is matched against.

A :class:`Signature` bundles the per-frame MFCC sequence (the temporal
pattern used by DTW), the per-coefficient mean and variance across frames
(used by the aggregate fallback comparator) and whole-buffer RMS and
zero-crossing rate.  Signatures are immutable once built and serialise to
plain JSON-compatible dictionaries.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from os import PathLike
from typing import Any, BinaryIO, Mapping, Optional, Union

import numpy as np
import soundfile as sf

from .constants import FRAME_SIZE, HOP_SIZE, NUM_MFCC
from .errors import DecodeError, InvalidInputError
from .features import extract_mfcc_frames, rms, zero_crossing_rate

logger = logging.getLogger(__name__)

AudioSource = Union[str, "PathLike[str]", bytes, bytearray, BinaryIO]


@dataclass(frozen=True, eq=False)
class Signature:
    """Immutable fingerprint of one recording.

    Two signatures are equal when all their arrays and levels match.

    Attributes:
        mfcc_mean: Mean of each MFCC coefficient across frames.
        mfcc_variance: Population variance of each coefficient.
        mfcc_frames: ``(n_frames, 13)`` per-frame MFCC vectors in temporal
            order.  May be empty for recordings shorter than one frame.
        rms: Root-mean-square level of the whole buffer.
        zcr: Zero crossings per sample of the whole buffer.
    """

    mfcc_mean: np.ndarray
    mfcc_variance: np.ndarray
    mfcc_frames: np.ndarray
    rms: float
    zcr: float

    def __post_init__(self) -> None:
        mean = np.array(self.mfcc_mean, dtype=np.float64).reshape(-1)
        variance = np.array(self.mfcc_variance, dtype=np.float64).reshape(-1)
        frames = np.array(self.mfcc_frames, dtype=np.float64)
        if frames.size == 0:
            frames = frames.reshape(0, NUM_MFCC)
        if mean.shape != (NUM_MFCC,) or variance.shape != (NUM_MFCC,):
            raise InvalidInputError(f"mean and variance must have {NUM_MFCC} coefficients")
        if frames.ndim != 2 or frames.shape[1] != NUM_MFCC:
            raise InvalidInputError(f"frames must be shaped (n, {NUM_MFCC}), got {frames.shape}")
        for arr in (mean, variance, frames):
            arr.setflags(write=False)
        object.__setattr__(self, "mfcc_mean", mean)
        object.__setattr__(self, "mfcc_variance", variance)
        object.__setattr__(self, "mfcc_frames", frames)
        object.__setattr__(self, "rms", float(self.rms))
        object.__setattr__(self, "zcr", float(self.zcr))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Signature):
            return NotImplemented
        return (
            self.rms == other.rms
            and self.zcr == other.zcr
            and np.array_equal(self.mfcc_mean, other.mfcc_mean)
            and np.array_equal(self.mfcc_variance, other.mfcc_variance)
            and np.array_equal(self.mfcc_frames, other.mfcc_frames)
        )

    @property
    def frame_count(self) -> int:
        return int(self.mfcc_frames.shape[0])

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""
        return {
            "mfccMean": self.mfcc_mean.tolist(),
            "mfccVariance": self.mfcc_variance.tolist(),
            "mfccFrames": self.mfcc_frames.tolist(),
            "rms": self.rms,
            "zcr": self.zcr,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Signature":
        """Rebuild a signature produced by :meth:`to_dict`.

        Raises:
            InvalidInputError: If keys are missing or arrays have the wrong
                dimensionality.
        """
        try:
            return cls(
                mfcc_mean=data["mfccMean"],
                mfcc_variance=data["mfccVariance"],
                mfcc_frames=data.get("mfccFrames", []),
                rms=data["rms"],
                zcr=data["zcr"],
            )
        except KeyError as exc:
            raise InvalidInputError(f"signature is missing {exc.args[0]!r}") from exc
        except InvalidInputError:
            raise
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"malformed signature: {exc}") from exc


def _validate_samples(samples: Optional[np.ndarray]) -> np.ndarray:
    if samples is None:
        raise InvalidInputError("samples must not be None")
    arr = np.asarray(samples, dtype=np.float64)
    if arr.ndim == 2:
        # (n_samples, n_channels) as returned by soundfile/sounddevice
        arr = arr.mean(axis=1)
    arr = arr.reshape(-1)
    if arr.size == 0:
        raise InvalidInputError("samples must not be empty")
    return arr


def build_signature_from_frames(mfcc_frames: np.ndarray, samples: np.ndarray) -> Signature:
    """Build a :class:`Signature` from pre-extracted MFCC frames.

    ``samples`` only contribute the RMS and zero-crossing rate, so the live
    analyzer can pair a window of buffered frames with the current chunk.
    """
    samples = _validate_samples(samples)
    frames = np.asarray(mfcc_frames, dtype=np.float64)
    if frames.size == 0:
        mean = np.zeros(NUM_MFCC)
        variance = np.zeros(NUM_MFCC)
        frames = np.zeros((0, NUM_MFCC))
    else:
        mean = frames.mean(axis=0)
        variance = frames.var(axis=0)
    return Signature(
        mfcc_mean=mean,
        mfcc_variance=variance,
        mfcc_frames=frames,
        rms=rms(samples),
        zcr=zero_crossing_rate(samples),
    )


def extract_signature(
    samples: np.ndarray,
    sample_rate: int,
    *,
    frame_size: int = FRAME_SIZE,
    hop_size: int = HOP_SIZE,
) -> Signature:
    """Return the :class:`Signature` of raw ``samples``.

    Args:
        samples: Mono samples, or an ``(n_samples, n_channels)`` array which
            is down-mixed by averaging channels.
        sample_rate: Sampling rate of ``samples`` in Hertz.
        frame_size: Analysis frame length.
        hop_size: Hop between analysis frames.

    Raises:
        InvalidInputError: If ``samples`` is ``None`` or empty.
    """
    samples = _validate_samples(samples)
    frames = extract_mfcc_frames(samples, sample_rate, frame_size=frame_size, hop_size=hop_size)
    if frames.shape[0] == 0:
        logger.debug("%d samples is shorter than one frame; signature has no frames", samples.size)
    return build_signature_from_frames(frames, samples)


def decode_audio(source: AudioSource) -> tuple[np.ndarray, int]:
    """Decode an encoded recording into mono float samples.

    Args:
        source: Path, raw bytes or binary file object of any container
            libsndfile understands (WAV, FLAC, OGG, ...).

    Returns:
        Tuple ``(samples, sample_rate)``.

    Raises:
        DecodeError: If the data cannot be decoded.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    try:
        data, sample_rate = sf.read(source, dtype="float32", always_2d=True)
    except (RuntimeError, TypeError, ValueError) as exc:
        raise DecodeError(f"could not decode audio: {exc}") from exc
    return data.mean(axis=1), int(sample_rate)


def extract_signature_from_file(source: AudioSource) -> Signature:
    """Decode ``source`` and return its :class:`Signature`.

    Raises:
        DecodeError: If decoding fails.
        InvalidInputError: If the decoded recording holds no samples.
    """
    samples, sample_rate = decode_audio(source)
    logger.debug("decoded %d samples at %d Hz", samples.size, sample_rate)
    return extract_signature(samples, sample_rate)


__all__ = [
    "Signature",
    "build_signature_from_frames",
    "extract_signature",
    "decode_audio",
    "extract_signature_from_file",
]
