"""Background thread that drives a :class:`LiveAnalyzer` from an audio source."""

from __future__ import annotations

import logging
import threading
from typing import Callable, ContextManager, Optional, Protocol

from .live_analyzer import LiveAnalyzer
from .models import AudioChunk, DetectionEvent

logger = logging.getLogger(__name__)


class ChunkSource(Protocol):
    """Anything that can hand over the latest block of samples."""

    def read(self) -> AudioChunk: ...


class SoundWorker(threading.Thread):
    """Tick ``analyzer`` with chunks from ``source`` at a fixed interval.

    The source is entered as a context manager when the thread starts and
    exited when it finishes, whatever the reason, so the capture device is
    always released.  Errors raised by a single tick are logged and the
    loop carries on with the next one.
    """

    def __init__(
        self,
        analyzer: LiveAnalyzer,
        source: ContextManager[ChunkSource],
        *,
        on_detection: Optional[Callable[[DetectionEvent], None]] = None,
        interval_ms: Optional[int] = None,
    ) -> None:
        """Initialise the worker thread.

        Args:
            analyzer: Analyzer to drive; it is started and stopped by the
                worker.
            source: Context manager yielding an object with ``read()``.
            on_detection: Callback for each emitted detection.
            interval_ms: Milliseconds between ticks.  Defaults to the
                analyzer's ``settings.analysis_interval_ms``.
        """
        super().__init__(name="sonicsight-worker", daemon=True)
        self.analyzer = analyzer
        self.source = source
        self.on_detection = on_detection
        self.interval_ms = interval_ms or analyzer.settings.analysis_interval_ms
        self._stop_event = threading.Event()

    # --------------------------------------------------------------
    def _process(self, reader: ChunkSource) -> None:
        chunk = reader.read()
        event = self.analyzer.tick(chunk)
        if event is not None and self.on_detection is not None:
            self.on_detection(event)

    def run(self) -> None:  # noqa: D401
        try:
            with self.source as reader:
                self.analyzer.start()
                try:
                    while not self._stop_event.wait(self.interval_ms / 1000.0):
                        try:
                            self._process(reader)
                        except Exception:
                            logger.exception("analysis tick failed")
                finally:
                    self.analyzer.stop()
        except Exception:
            logger.exception("worker error")

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        """Ask the loop to finish and wait for the source to be released."""
        self._stop_event.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)


__all__ = ["ChunkSource", "SoundWorker"]
