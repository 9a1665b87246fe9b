"""Tests for :class:`sonicsight.live_analyzer.LiveAnalyzer`."""

from __future__ import annotations

import numpy as np
import pytest

from sonicsight import live_analyzer
from sonicsight.live_analyzer import LiveAnalyzer, LiveAnalyzerState
from sonicsight.models import AudioChunk, CalibratedSound
from sonicsight.settings import DetectionSettings
from sonicsight.signature import extract_signature

from conftest import SR, sine


class FakeClock:
    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def _beep(samples: np.ndarray) -> CalibratedSound:
    return CalibratedSound("beep_1", "Beep", "#f59e0b", extract_signature(samples, SR))


def _counting_frames(monkeypatch: pytest.MonkeyPatch, per_tick: int) -> None:
    """Make every tick produce ``per_tick`` frames numbered consecutively."""
    counter = {"next": 0}

    def fake_extract(samples, sample_rate):
        start = counter["next"]
        counter["next"] += per_tick
        return np.repeat(np.arange(start, start + per_tick, dtype=np.float64)[:, None], 13, axis=1)

    monkeypatch.setattr(live_analyzer, "extract_mfcc_frames", fake_extract)


def test_tick_requires_start(tone: np.ndarray) -> None:
    analyzer = LiveAnalyzer([_beep(tone)])
    with pytest.raises(RuntimeError):
        analyzer.tick(AudioChunk(tone, SR))


def test_calibrated_sine_detected_through_live_path(tone: np.ndarray) -> None:
    events = []
    analyzer = LiveAnalyzer([_beep(tone)], on_detection=events.append, clock=FakeClock())
    analyzer.start()
    event = analyzer.tick(AudioChunk(tone, SR))
    assert event is not None
    assert event.sound_id == "beep_1"
    assert event.name == "Beep"
    assert event.color == "#f59e0b"
    assert event.score >= 0.9
    assert event.timestamp == 1_000
    assert events == [event]
    # Buffer is cleared after an accepted detection.
    assert len(analyzer.state) == 0


def test_silence_gate_keeps_buffer(tone: np.ndarray, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(live_analyzer, "find_best_match_from_buffer", lambda *a, **k: (None, 0.0))
    analyzer = LiveAnalyzer([_beep(tone)])
    analyzer.start()
    analyzer.tick(AudioChunk(tone, SR))
    before = analyzer.state.frames.copy()
    assert len(before) > 0
    assert analyzer.tick(AudioChunk(np.zeros(SR, dtype=np.float32), SR)) is None
    assert analyzer.tick(AudioChunk(tone * 0.001, SR)) is None
    assert np.array_equal(analyzer.state.frames, before)


def test_no_match_attempt_below_min_frames(monkeypatch: pytest.MonkeyPatch, tone: np.ndarray) -> None:
    calls = []
    monkeypatch.setattr(
        live_analyzer, "find_best_match_from_buffer", lambda *a, **k: calls.append(a) or (None, 0.0)
    )
    _counting_frames(monkeypatch, per_tick=7)
    analyzer = LiveAnalyzer([_beep(tone)])
    analyzer.start()
    chunk = AudioChunk(tone, SR)
    analyzer.tick(chunk)
    analyzer.tick(chunk)
    assert calls == []
    analyzer.tick(chunk)
    assert len(calls) == 1


def test_rolling_buffer_keeps_most_recent_frames(monkeypatch: pytest.MonkeyPatch, tone: np.ndarray) -> None:
    monkeypatch.setattr(live_analyzer, "find_best_match_from_buffer", lambda *a, **k: (None, 0.0))
    _counting_frames(monkeypatch, per_tick=30)
    analyzer = LiveAnalyzer([_beep(tone)])
    analyzer.start()
    chunk = AudioChunk(tone, SR)
    for tick in range(1, 21):
        analyzer.tick(chunk)
        assert len(analyzer.state) == min(30 * tick, 400)
    frames = analyzer.state.frames
    assert frames.shape == (400, 13)
    assert np.array_equal(frames[:, 0], np.arange(200, 600))


def test_state_push_drops_oldest() -> None:
    state = LiveAnalyzerState(max_frames=5)
    state.push(np.arange(3 * 13, dtype=np.float64).reshape(3, 13))
    state.push(np.arange(3 * 13, 6 * 13, dtype=np.float64).reshape(3, 13))
    assert len(state) == 5
    assert state.frames[0, 0] == 13.0
    state.push(np.zeros((0, 13)))
    assert len(state) == 5


def test_cooldown_suppresses_repeat_detections(monkeypatch: pytest.MonkeyPatch, tone: np.ndarray) -> None:
    sound = _beep(tone)
    monkeypatch.setattr(live_analyzer, "find_best_match_from_buffer", lambda *a, **k: (sound, 0.9))
    clock = FakeClock(10_000)
    events = []
    analyzer = LiveAnalyzer(
        [sound],
        settings=DetectionSettings(cooldown_ms=3000),
        on_detection=events.append,
        clock=clock,
    )
    analyzer.start()
    chunk = AudioChunk(tone, SR)

    assert analyzer.tick(chunk) is not None
    clock.now = 12_000
    assert analyzer.tick(chunk) is None
    # Suppressed detections leave the buffer intact.
    assert len(analyzer.state) > 0
    clock.now = 13_001
    assert analyzer.tick(chunk) is not None
    assert [e.timestamp for e in events] == [10_000, 13_001]
    assert analyzer.state.last_detections == {"beep_1": 13_001}


def test_threshold_respected(tone: np.ndarray) -> None:
    analyzer = LiveAnalyzer([_beep(sine(1000.0))], settings=DetectionSettings(threshold=1.0))
    analyzer.start()
    noise = np.random.default_rng(9).uniform(-0.3, 0.3, size=SR).astype(np.float32)
    assert analyzer.tick(AudioChunk(noise, SR)) is None


def test_uncalibrated_and_short_sounds_ignored(tone: np.ndarray) -> None:
    short = CalibratedSound("blip_1", "Blip", "#000", extract_signature(sine(dur=0.05), SR))
    pending = CalibratedSound("new_1", "New", "#fff")
    analyzer = LiveAnalyzer([short, pending])
    analyzer.start()
    assert analyzer.tick(AudioChunk(tone, SR)) is None


def test_stop_discards_state(tone: np.ndarray) -> None:
    analyzer = LiveAnalyzer([_beep(sine(440.0))])
    analyzer.start()
    analyzer.tick(AudioChunk(tone, SR))
    assert analyzer.is_running
    analyzer.stop()
    assert analyzer.state is None
    assert not analyzer.is_running
    analyzer.start()
    assert len(analyzer.state) == 0
    assert analyzer.state.last_detections == {}


def test_set_sounds_replaces_library(tone: np.ndarray) -> None:
    analyzer = LiveAnalyzer(clock=FakeClock())
    analyzer.start()
    assert analyzer.tick(AudioChunk(tone, SR)) is None
    analyzer.set_sounds([_beep(tone)])
    analyzer.state.clear_frames()
    assert analyzer.tick(AudioChunk(tone, SR)) is not None


def test_silence_gate_follows_settings(tone: np.ndarray) -> None:
    # The tone's RMS is about 0.35, so a 0.5 gate treats it as silence.
    analyzer = LiveAnalyzer([_beep(tone)], settings=DetectionSettings(silence_gate=0.5))
    analyzer.start()
    assert analyzer.tick(AudioChunk(tone, SR)) is None
    assert len(analyzer.state) == 0


def test_failing_callback_still_returns_event(tone: np.ndarray, caplog: pytest.LogCaptureFixture) -> None:
    def explode(_event) -> None:
        raise RuntimeError("display went away")

    clock = FakeClock()
    analyzer = LiveAnalyzer([_beep(tone)], on_detection=explode, clock=clock)
    analyzer.start()
    with caplog.at_level("ERROR", logger="sonicsight.live_analyzer"):
        event = analyzer.tick(AudioChunk(tone, SR))
    assert event is not None and event.sound_id == "beep_1"
    assert "detection callback failed" in caplog.text
    assert analyzer.state.last_detections == {"beep_1": 1_000}
    # The lock was released, so the next tick runs normally.
    clock.now += 10_000
    assert analyzer.tick(AudioChunk(tone, SR)) is not None
