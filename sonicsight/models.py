"""Value types exchanged between the detector and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import numpy as np

from .signature import Signature


@dataclass(frozen=True)
class CalibratedSound:
    """A user-calibrated reference sound.

    ``signature`` stays ``None`` until calibration has completed.
    """

    id: str
    name: str
    color: str
    signature: Optional[Signature] = field(default=None, compare=False)

    @property
    def is_calibrated(self) -> bool:
        return self.signature is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "name": self.name, "color": self.color}
        if self.signature is not None:
            data["signature"] = self.signature.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalibratedSound":
        raw = data.get("signature")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            color=str(data["color"]),
            signature=Signature.from_dict(raw) if raw else None,
        )


@dataclass(frozen=True)
class DetectionEvent:
    """A calibrated sound recognised in the live stream.

    ``timestamp`` is in milliseconds since the epoch (or of whichever clock
    drove the analyzer).
    """

    sound_id: str
    name: str
    color: str
    score: float
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "soundId": self.sound_id,
            "name": self.name,
            "color": self.color,
            "score": self.score,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, eq=False)
class AudioChunk:
    """A block of mono samples delivered by an audio source."""

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "samples", np.asarray(self.samples, dtype=np.float32).reshape(-1))
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @property
    def duration(self) -> float:
        """Length of the chunk in seconds."""
        return self.samples.size / self.sample_rate if self.sample_rate else 0.0


__all__ = ["CalibratedSound", "DetectionEvent", "AudioChunk"]
