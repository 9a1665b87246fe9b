"""Caller-tunable detection settings."""

from __future__ import annotations

from dataclasses import dataclass

from .constants import (
    ANALYSIS_INTERVAL_MS,
    COOLDOWN_MS,
    MATCH_THRESHOLD,
    SENSITIVITY_DEFAULT,
    SILENCE_GATE,
    THRESHOLD_MAX,
    THRESHOLD_MIN,
)


def threshold_from_sensitivity(sensitivity: float = SENSITIVITY_DEFAULT) -> float:
    """Map a 0–100 sensitivity slider onto a match threshold.

    ``0`` gives the strictest threshold (``THRESHOLD_MAX``) and ``100`` the
    most permissive (``THRESHOLD_MIN``).  Values outside the slider range
    are clipped.
    """
    level = min(max(float(sensitivity), 0.0), 100.0) / 100.0
    return THRESHOLD_MAX - level * (THRESHOLD_MAX - THRESHOLD_MIN)


@dataclass(frozen=True)
class DetectionSettings:
    """Tunables exposed to whoever drives the live analyzer.

    Attributes:
        analysis_interval_ms: Milliseconds between analysis ticks.
        threshold: Minimum similarity score (``0``‑``1``) for a detection.
        cooldown_ms: Minimum time between two detections of the same sound.
        silence_gate: RMS level below which a chunk is ignored.
    """

    analysis_interval_ms: int = ANALYSIS_INTERVAL_MS
    threshold: float = MATCH_THRESHOLD
    cooldown_ms: int = COOLDOWN_MS
    silence_gate: float = SILENCE_GATE

    def __post_init__(self) -> None:
        if self.analysis_interval_ms <= 0:
            raise ValueError("analysis_interval_ms must be positive")
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError("threshold must be between 0 and 1")
        if self.cooldown_ms < 0:
            raise ValueError("cooldown_ms must not be negative")
        if self.silence_gate < 0:
            raise ValueError("silence_gate must not be negative")

    @classmethod
    def from_sensitivity(cls, sensitivity: float = SENSITIVITY_DEFAULT, **kwargs) -> "DetectionSettings":
        """Build settings whose threshold follows the sensitivity slider."""
        return cls(threshold=threshold_from_sensitivity(sensitivity), **kwargs)


__all__ = ["DetectionSettings", "threshold_from_sensitivity"]
