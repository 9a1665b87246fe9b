import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

SR = 44_100


def sine(freq: float = 1000.0, dur: float = 1.0, sr: int = SR, amp: float = 0.5) -> np.ndarray:
    t = np.arange(int(sr * dur)) / sr
    return (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def white_noise(dur: float = 1.0, sr: int = SR, amp: float = 0.3, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return (amp * rng.uniform(-1.0, 1.0, size=int(sr * dur))).astype(np.float32)


@pytest.fixture
def tone() -> np.ndarray:
    return sine()


@pytest.fixture
def noise() -> np.ndarray:
    return white_noise()
