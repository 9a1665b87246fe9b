"""Tests for :class:`sonicsight.sound_worker.SoundWorker`."""

from __future__ import annotations

import threading

import numpy as np

from sonicsight.live_analyzer import LiveAnalyzer
from sonicsight.models import AudioChunk, CalibratedSound
from sonicsight.signature import extract_signature
from sonicsight.sound_worker import SoundWorker

from conftest import SR


class FakeSource:
    """Replays the same chunk and records its lifecycle."""

    def __init__(self, samples: np.ndarray, fail_first: bool = False) -> None:
        self.samples = samples
        self.fail_first = fail_first
        self.reads = 0
        self.entered = False
        self.exited = False

    def __enter__(self) -> "FakeSource":
        self.entered = True
        return self

    def __exit__(self, *_) -> None:
        self.exited = True

    def read(self) -> AudioChunk:
        self.reads += 1
        if self.fail_first and self.reads == 1:
            raise RuntimeError("device hiccup")
        return AudioChunk(self.samples, SR)


def _analyzer(tone: np.ndarray) -> LiveAnalyzer:
    sound = CalibratedSound("beep_1", "Beep", "#f00", extract_signature(tone, SR))
    return LiveAnalyzer([sound])


def test_worker_emits_detection_and_releases_source(tone: np.ndarray) -> None:
    detected = threading.Event()
    events = []

    def on_detection(event) -> None:
        events.append(event)
        detected.set()

    analyzer = _analyzer(tone)
    source = FakeSource(tone, fail_first=True)
    worker = SoundWorker(analyzer, source, on_detection=on_detection, interval_ms=10)
    worker.start()
    try:
        assert detected.wait(10.0)
    finally:
        worker.stop()
    assert not worker.is_alive()
    assert source.entered and source.exited
    assert source.reads >= 2
    assert events[0].sound_id == "beep_1"
    assert not analyzer.is_running


def test_worker_interval_defaults_to_settings(tone: np.ndarray) -> None:
    worker = SoundWorker(_analyzer(tone), FakeSource(tone))
    assert worker.interval_ms == 500
    worker.stop()
