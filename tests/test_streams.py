import sys
import threading
import types

import numpy as np
import pytest

from sonicsight.streams import MicrophoneSource, record_until_silence


class DummyStream:
    """Stand-in for ``sounddevice.InputStream`` replaying fixed blocks."""

    def __init__(self, blocks) -> None:
        self.blocks = list(blocks)
        self.reads = 0

    def __enter__(self) -> "DummyStream":
        return self

    def __exit__(self, *_) -> None:
        return None

    def read(self, hop: int):
        self.reads += 1
        if self.blocks:
            return self.blocks.pop(0), False
        return np.zeros((hop, 1), dtype=np.float32), False


def _install(monkeypatch: pytest.MonkeyPatch, stream: DummyStream) -> None:
    dummy_sd = types.SimpleNamespace(InputStream=lambda **_: stream)
    monkeypatch.setitem(sys.modules, "sounddevice", dummy_sd)


def test_record_until_silence_stop(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, DummyStream([]))
    stop = threading.Event()
    stop.set()
    data = record_until_silence(0, stop_event=stop)
    assert data.size == 0


def test_record_until_silence_stops_after_sound(monkeypatch: pytest.MonkeyPatch) -> None:
    loud = np.full((1024, 1), 0.5, dtype=np.float32)
    stream = DummyStream([np.zeros((1024, 1), dtype=np.float32)] * 3 + [loud] * 4)
    _install(monkeypatch, stream)
    data = record_until_silence(0, sample_rate=8192, hop_size=1024, silence_duration=0.25)
    # 3 silent lead-in blocks + 4 loud + 2 silent blocks to reach 0.25 s.
    assert data.size == 9 * 1024
    assert data.dtype == np.float32


def test_record_until_silence_respects_max_duration(monkeypatch: pytest.MonkeyPatch) -> None:
    loud = np.full((1024, 2), 0.5, dtype=np.float32)
    _install(monkeypatch, DummyStream([loud] * 100))
    data = record_until_silence(0, sample_rate=8192, hop_size=1024, max_duration=0.5, channels=2)
    assert data.size == 4 * 1024
    assert data.ndim == 1


def test_microphone_source_keeps_latest_samples() -> None:
    source = MicrophoneSource(sample_rate=8000, chunk_size=8)
    source._callback(np.arange(6, dtype=np.float32).reshape(6, 1), 6, None, None)
    source._callback(np.arange(6, 10, dtype=np.float32).reshape(4, 1), 4, None, None)
    chunk = source.read()
    assert chunk.sample_rate == 8000
    assert chunk.samples.tolist() == [2, 3, 4, 5, 6, 7, 8, 9]


def test_microphone_source_context_closes_stream(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    class FakeInputStream:
        def __init__(self, **kwargs) -> None:
            calls.append(("init", kwargs["samplerate"]))

        def start(self) -> None:
            calls.append("start")

        def stop(self) -> None:
            calls.append("stop")

        def close(self) -> None:
            calls.append("close")

    monkeypatch.setitem(sys.modules, "sounddevice", types.SimpleNamespace(InputStream=FakeInputStream))
    with MicrophoneSource(sample_rate=48_000) as source:
        assert source.read().samples.size == source.chunk_size
    assert calls == [("init", 48_000), "start", "stop", "close"]
    assert source.stream is None
