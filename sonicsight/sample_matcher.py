"""Utility functions for matching signatures against calibrated sounds."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

import numpy as np

from .constants import (
    AGGREGATE_SIGMA,
    DTW_SIGMA,
    MATCH_THRESHOLD,
    MIN_COVERAGE,
    MIN_DTW_FRAMES,
    MIN_WINDOW_FRAMES,
    NORM_EPSILON,
    VARIANCE_EPSILON,
    WINDOW_SLACK,
)
from .models import CalibratedSound
from .sequence import dtw_distance
from .signature import Signature, build_signature_from_frames

logger = logging.getLogger(__name__)


def _gaussian(distance: float, sigma: float) -> float:
    return math.exp(-(distance * distance) / (2.0 * sigma * sigma))


def normalise_frames(frames: np.ndarray) -> np.ndarray:
    """Return ``frames`` with gain and DC bias removed.

    Each coefficient is centred on its mean across the sequence, then each
    frame is scaled to unit Euclidean length.  Frames whose centred norm is
    below ``NORM_EPSILON`` are left centred but unscaled.
    """
    frames = np.asarray(frames, dtype=np.float64)
    if frames.shape[0] == 0:
        return frames.copy()
    centred = frames - frames.mean(axis=0)
    norms = np.linalg.norm(centred, axis=1, keepdims=True)
    scale = np.where(norms < NORM_EPSILON, 1.0, norms)
    return centred / scale


def dtw_similarity(live_frames: np.ndarray, reference_frames: np.ndarray) -> float:
    """Return the DTW similarity of two MFCC sequences in ``0``‑``1``."""
    dist = dtw_distance(normalise_frames(live_frames), normalise_frames(reference_frames))
    if math.isinf(dist):
        return 0.0
    return _gaussian(dist, DTW_SIGMA)


def aggregate_similarity(live: Signature, reference: Signature) -> float:
    """Compare mean MFCC vectors weighted by the reference's variance.

    Used when either signature has too few frames for DTW.
    """
    diff = live.mfcc_mean - reference.mfcc_mean
    weights = 1.0 / (reference.mfcc_variance + VARIANCE_EPSILON)
    dist = float(np.sqrt(np.mean(diff * diff * weights)))
    return _gaussian(dist, AGGREGATE_SIGMA)


def compare_signatures(live: Signature, reference: Signature) -> float:
    """Return a similarity score between ``live`` and ``reference``.

    Args:
        live: Signature of the captured audio (the DTW query).
        reference: Signature of the calibrated sound.

    Returns:
        Score in the range ``0``‑``1``; higher is more similar.  Loudness
        and zero-crossing rate are ignored so microphone distance and gain
        do not influence matching.
    """
    if live.frame_count >= MIN_DTW_FRAMES and reference.frame_count >= MIN_DTW_FRAMES:
        return dtw_similarity(live.mfcc_frames, reference.mfcc_frames)
    return aggregate_similarity(live, reference)


def find_best_match(
    live: Signature,
    library: Iterable[CalibratedSound],
    *,
    threshold: float = MATCH_THRESHOLD,
) -> tuple[Optional[CalibratedSound], float]:
    """Return the best-matching calibrated sound and its score.

    Sounds without a signature are skipped.

    Returns:
        Tuple of ``(sound, score)`` where ``sound`` is ``None`` if no score
        reaches ``threshold`` and ``score`` is the best score seen.
    """
    best_sound: Optional[CalibratedSound] = None
    best_score = 0.0
    for sound in library:
        if sound.signature is None:
            continue
        score = compare_signatures(live, sound.signature)
        if score > best_score:
            best_score = score
            best_sound = sound
    if best_sound is not None and best_score >= threshold:
        return best_sound, best_score
    return None, best_score


def window_size_for(frame_count: int, buffered: int) -> Optional[int]:
    """Return how many recent frames to compare against a calibrated sound.

    Returns ``None`` when ``buffered`` frames do not yet cover enough of a
    sound that is ``frame_count`` frames long.
    """
    required = max(MIN_WINDOW_FRAMES, math.ceil(frame_count * MIN_COVERAGE))
    if buffered < required:
        return None
    return min(buffered, math.ceil(frame_count * WINDOW_SLACK))


def find_best_match_from_buffer(
    frame_buffer: np.ndarray,
    samples: np.ndarray,
    library: Iterable[CalibratedSound],
    *,
    threshold: float = MATCH_THRESHOLD,
) -> tuple[Optional[CalibratedSound], float]:
    """Match the tail of a rolling frame buffer against each calibrated sound.

    For every sound only the most recent frames (up to 1.3x its calibrated
    length) are compared so sounds of different lengths are treated fairly.
    A failure while scoring one sound is logged and the remaining sounds
    are still evaluated.

    Args:
        frame_buffer: ``(n_frames, 13)`` buffered live MFCC frames.
        samples: Current raw chunk, used for the window's RMS and ZCR.
        library: Calibrated sounds to compare against.
        threshold: Minimum score for a match.

    Returns:
        Tuple of ``(sound, score)`` as for :func:`find_best_match`.
    """
    frame_buffer = np.asarray(frame_buffer, dtype=np.float64)
    buffered = frame_buffer.shape[0]
    best_sound: Optional[CalibratedSound] = None
    best_score = 0.0
    for sound in library:
        signature = sound.signature
        if signature is None or signature.frame_count < MIN_DTW_FRAMES:
            continue
        size = window_size_for(signature.frame_count, buffered)
        if size is None:
            logger.debug(
                "skipping %s: %d buffered frames, calibrated with %d",
                sound.id,
                buffered,
                signature.frame_count,
            )
            continue
        try:
            window = build_signature_from_frames(frame_buffer[buffered - size :], samples)
            score = compare_signatures(window, signature)
        except Exception:
            logger.exception("failed to score sound %s", sound.id)
            continue
        logger.debug("sound %s scored %.3f over %d frames", sound.id, score, size)
        if score > best_score:
            best_score = score
            best_sound = sound
    if best_sound is not None and best_score >= threshold:
        return best_sound, best_score
    return None, best_score


__all__ = [
    "normalise_frames",
    "dtw_similarity",
    "aggregate_similarity",
    "compare_signatures",
    "find_best_match",
    "window_size_for",
    "find_best_match_from_buffer",
]
