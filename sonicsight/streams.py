"""Microphone capture built on :mod:`sounddevice`.

``sounddevice`` is imported lazily so the rest of the package works on
machines without PortAudio.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from .constants import (
    CHUNK_SIZE,
    HOP_SIZE,
    MAX_RECORDING_SECONDS,
    RECORDING_SILENCE_THRESHOLD,
    SAMPLE_RATE,
)
from .models import AudioChunk

logger = logging.getLogger(__name__)


def _to_mono(data: np.ndarray) -> np.ndarray:
    if data.ndim == 2 and data.shape[1] > 1:
        return data.mean(axis=1).astype(np.float32)
    return data.reshape(-1).astype(np.float32)


class MicrophoneSource:
    """Keep the most recent ``chunk_size`` microphone samples.

    The input stream callback writes into a ring buffer; :meth:`read`
    returns a snapshot of it as an :class:`~sonicsight.models.AudioChunk`.
    Use as a context manager so the stream is closed on every exit path.

    Args:
        device: Input device index or name (``None`` for the default).
        sample_rate: Capture rate in Hertz.
        chunk_size: Number of samples returned by :meth:`read`.
        channels: Number of channels captured; they are averaged to mono.
        block_size: Samples delivered per stream callback.
    """

    def __init__(
        self,
        device: Optional[int | str] = None,
        *,
        sample_rate: int = SAMPLE_RATE,
        chunk_size: int = CHUNK_SIZE,
        channels: int = 1,
        block_size: int = HOP_SIZE,
    ) -> None:
        self.device = device
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.block_size = block_size
        self._ring = np.zeros(chunk_size, dtype=np.float32)
        self._lock = threading.Lock()
        self.stream = None

    # --------------------------------------------------------------
    def _callback(self, indata, frames, _time, status) -> None:  # noqa: D401
        if status:
            logger.warning("input stream status: %s", status)
        block = _to_mono(indata)[-self.chunk_size :]
        with self._lock:
            self._ring = np.concatenate([self._ring[block.size :], block])

    def open(self) -> "MicrophoneSource":
        import sounddevice as sd

        self.stream = sd.InputStream(
            device=self.device,
            channels=self.channels,
            samplerate=self.sample_rate,
            blocksize=self.block_size,
            dtype="float32",
            callback=self._callback,
        )
        self.stream.start()
        logger.info("microphone opened (device=%s, %d Hz)", self.device, self.sample_rate)
        return self

    def read(self) -> AudioChunk:
        """Return the most recent ``chunk_size`` samples."""
        with self._lock:
            samples = self._ring.copy()
        return AudioChunk(samples=samples, sample_rate=self.sample_rate)

    def close(self) -> None:
        if self.stream is None:
            return
        stream, self.stream = self.stream, None
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("microphone closed")

    def __enter__(self) -> "MicrophoneSource":
        return self.open()

    def __exit__(self, *_) -> None:
        self.close()


def record_until_silence(
    device_index: Optional[int] = None,
    *,
    sample_rate: int = SAMPLE_RATE,
    hop_size: int = 1024,
    threshold: float = RECORDING_SILENCE_THRESHOLD,
    silence_duration: float = 0.5,
    max_duration: float = MAX_RECORDING_SECONDS,
    channels: int = 1,
    stop_event: Optional[threading.Event] = None,
) -> np.ndarray:
    """Record a calibration sample until a period of silence is detected.

    Args:
        device_index: Index of the audio input device.
        sample_rate: Sampling rate of the device in Hertz.
        hop_size: Number of samples processed per iteration.
        threshold: RMS amplitude below which audio is considered silent.
        silence_duration: Consecutive seconds of silence required to stop.
        max_duration: Maximum length of the recording in seconds.
        channels: Number of input channels to record.
        stop_event: Optional event that, when set, aborts recording early.

    Returns:
        Recorded mono samples. An empty array is returned if no audio was
        captured.
    """
    import sounddevice as sd

    blocks: list[np.ndarray] = []
    captured = 0
    silent = 0
    heard = False
    required = int(silence_duration * sample_rate)
    limit = int(max_duration * sample_rate)
    with sd.InputStream(
        device=device_index,
        channels=channels,
        samplerate=sample_rate,
        blocksize=hop_size,
        dtype="float32",
    ) as stream:
        while captured < limit:
            if stop_event is not None and stop_event.is_set():
                break
            data, overflowed = stream.read(hop_size)
            if overflowed:
                logger.warning("input overflow while recording")
            block = _to_mono(data)
            blocks.append(block)
            captured += block.size
            level = float(np.sqrt(np.mean(block.astype(np.float64) ** 2)))
            if level < threshold:
                silent += block.size
                # Leading silence before the sound starts does not end it.
                if heard and silent >= required:
                    break
            else:
                heard = True
                silent = 0
    if blocks:
        return np.concatenate(blocks)
    return np.array([], dtype=np.float32)


__all__ = ["MicrophoneSource", "record_until_silence"]
