import math

import numpy as np
import pytest

from sonicsight.sequence import band_width, dtw_distance


def test_band_width_has_floor() -> None:
    assert band_width(8, 12) == 10
    assert band_width(100, 60) == 25
    assert band_width(101, 60) == 26


def test_self_distance_is_zero() -> None:
    rng = np.random.default_rng(4)
    seq = rng.normal(size=(60, 13))
    assert dtw_distance(seq, seq) == 0.0


def test_empty_sequence_is_infinite() -> None:
    assert math.isinf(dtw_distance(np.zeros((0, 13)), np.ones((5, 13))))
    assert math.isinf(dtw_distance(np.ones((5, 13)), np.zeros((0, 13))))


def test_time_stretched_sequence_is_close() -> None:
    t = np.linspace(0, 1, 40)
    base = np.stack([np.sin(2 * np.pi * 0.2 * (k + 1) * t) for k in range(13)], axis=1)
    t_slow = np.linspace(0, 1, 52)
    stretched = np.stack([np.sin(2 * np.pi * 0.2 * (k + 1) * t_slow) for k in range(13)], axis=1)
    other = np.random.default_rng(5).normal(size=(52, 13))
    assert dtw_distance(stretched, base) < dtw_distance(other, base)


def test_distance_is_length_normalised() -> None:
    a = np.zeros((20, 13))
    b = np.ones((20, 13))
    # Every step costs sqrt(13); the diagonal path has 20 steps.
    assert dtw_distance(a, b) == pytest.approx(math.sqrt(13))


def test_distance_is_roughly_symmetric() -> None:
    rng = np.random.default_rng(6)
    a = rng.normal(size=(30, 13))
    b = rng.normal(size=(45, 13))
    assert dtw_distance(a, b) == pytest.approx(dtw_distance(b, a), rel=0.25)
