"""Continuous matching of a live audio stream against calibrated sounds.

:class:`LiveAnalyzer` is driven by an external timer: each call to
:meth:`LiveAnalyzer.tick` ingests one chunk of samples into a rolling
buffer of MFCC frames and compares the tail of that buffer with every
calibrated sound.  All mutable state lives in :class:`LiveAnalyzerState`
and is only touched from within ``tick``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

import numpy as np

from .constants import MAX_BUFFER_FRAMES, MIN_BUFFER_FRAMES, NUM_MFCC
from .features import extract_mfcc_frames
from .models import AudioChunk, CalibratedSound, DetectionEvent
from .noise_gate import is_silent
from .sample_matcher import find_best_match_from_buffer
from .settings import DetectionSettings

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class LiveAnalyzerState:
    """Rolling frame buffer and per-sound cooldown timestamps.

    Attributes:
        frames: ``(n, 13)`` most recent MFCC frames, oldest first.
        last_detections: Sound id to the timestamp (ms) of its last
            accepted detection.
    """

    max_frames: int = MAX_BUFFER_FRAMES
    frames: np.ndarray = field(default_factory=lambda: np.zeros((0, NUM_MFCC)))
    last_detections: dict[str, int] = field(default_factory=dict)

    def push(self, new_frames: np.ndarray) -> None:
        """Append ``new_frames`` and drop the oldest beyond ``max_frames``."""
        if len(new_frames) == 0:
            return
        combined = np.concatenate([self.frames, new_frames])
        self.frames = combined[-self.max_frames :]

    def clear_frames(self) -> None:
        self.frames = np.zeros((0, NUM_MFCC))

    def __len__(self) -> int:
        return int(self.frames.shape[0])


class LiveAnalyzer:
    """Match a live audio stream against a library of calibrated sounds.

    Parameters
    ----------
    sounds:
        Calibrated sounds to listen for.  Sounds without a signature, or with
        fewer than three frames, are ignored.
    settings:
        Threshold, cooldown and silence gate.  The analysis interval is used
        by whoever schedules :meth:`tick`.
    on_detection:
        Optional callback invoked with every emitted :class:`DetectionEvent`.
    max_buffer_frames:
        Capacity of the rolling frame buffer.
    min_buffer_frames:
        Frames required before any comparison is attempted.
    clock:
        Returns the current time in milliseconds; injectable for tests.
    """

    def __init__(
        self,
        sounds: Iterable[CalibratedSound] = (),
        *,
        settings: Optional[DetectionSettings] = None,
        on_detection: Optional[Callable[[DetectionEvent], None]] = None,
        max_buffer_frames: int = MAX_BUFFER_FRAMES,
        min_buffer_frames: int = MIN_BUFFER_FRAMES,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.settings = settings or DetectionSettings()
        self.on_detection = on_detection
        self.max_buffer_frames = max_buffer_frames
        self.min_buffer_frames = min_buffer_frames
        self.clock = clock
        self._sounds: tuple[CalibratedSound, ...] = tuple(sounds)
        self._state: Optional[LiveAnalyzerState] = None
        self._lock = threading.Lock()

    # --------------------------------------------------------------
    @property
    def sounds(self) -> tuple[CalibratedSound, ...]:
        return self._sounds

    def set_sounds(self, sounds: Iterable[CalibratedSound]) -> None:
        """Replace the library; takes effect from the next tick."""
        self._sounds = tuple(sounds)

    @property
    def state(self) -> Optional[LiveAnalyzerState]:
        """Current state, or ``None`` when the analyzer is stopped."""
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is not None

    # --------------------------------------------------------------
    def start(self) -> None:
        """Begin a listening session with an empty buffer and cooldown map."""
        with self._lock:
            self._state = LiveAnalyzerState(max_frames=self.max_buffer_frames)
        logger.info("live analyzer started with %d sound(s)", len(self._sounds))

    def stop(self) -> None:
        """End the session and discard the buffer and cooldown map."""
        with self._lock:
            self._state = None
        logger.info("live analyzer stopped")

    # --------------------------------------------------------------
    def tick(self, chunk: AudioChunk) -> Optional[DetectionEvent]:
        """Ingest ``chunk`` and return a detection if one is accepted.

        Ticks never overlap; a concurrent call waits for the running one.
        ``on_detection`` runs after the lock is released; an exception it
        raises is logged and the event is still returned.

        Raises:
            RuntimeError: If the analyzer has not been started.
        """
        with self._lock:
            state = self._state
            if state is None:
                raise RuntimeError("LiveAnalyzer is not running; call start() first")
            event = self._tick(state, chunk)
        if event is not None and self.on_detection is not None:
            try:
                self.on_detection(event)
            except Exception:
                logger.exception("detection callback failed for %s", event.sound_id)
        return event

    def _tick(self, state: LiveAnalyzerState, chunk: AudioChunk) -> Optional[DetectionEvent]:
        samples = chunk.samples
        if samples.size == 0:
            return None
        if is_silent(samples, self.settings.silence_gate):
            # Brief silences are part of many sounds; keep the buffer.
            return None

        state.push(extract_mfcc_frames(samples, chunk.sample_rate))
        if len(state) < self.min_buffer_frames:
            return None

        sound, score = find_best_match_from_buffer(
            state.frames,
            samples,
            self._sounds,
            threshold=self.settings.threshold,
        )
        if sound is None:
            return None

        now = int(self.clock())
        last = state.last_detections.get(sound.id)
        if last is not None and now - last <= self.settings.cooldown_ms:
            logger.debug("suppressed %s (%.3f): within cooldown", sound.id, score)
            return None

        state.last_detections[sound.id] = now
        state.clear_frames()
        event = DetectionEvent(
            sound_id=sound.id,
            name=sound.name,
            color=sound.color,
            score=score,
            timestamp=now,
        )
        logger.info("detected %s (%s) score=%.3f", sound.name, sound.id, score)
        return event


__all__ = ["LiveAnalyzer", "LiveAnalyzerState"]
