"""Local JSON store of calibrated sounds."""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional, Union

from .errors import InvalidInputError
from .models import CalibratedSound
from .signature import Signature

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#3b82f6"


def generate_sound_id(base: str, existing: Iterable[str]) -> str:
    """Slug ``base`` and append the first free ``_<n>`` suffix.

    ``"Door bell"`` becomes ``"door_bell_1"``, or ``"door_bell_2"`` once that
    id is taken.  A blank name falls back to ``"sound"``.
    """
    slug = "_".join(base.lower().split()) or "sound"
    taken = set(existing)
    return next(f"{slug}_{n}" for n in itertools.count(1) if f"{slug}_{n}" not in taken)


class SoundLibrary:
    """Calibrated sounds persisted in a single JSON file.

    The file holds ``{"sounds": [...]}`` where every entry is the output of
    :meth:`CalibratedSound.to_dict`.  A missing file is an empty library.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._sounds: dict[str, CalibratedSound] = {}

    def load(self) -> "SoundLibrary":
        if not self.path.exists():
            logger.debug("library %s does not exist yet", self.path)
            self._sounds = {}
            return self
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            sounds = [CalibratedSound.from_dict(entry) for entry in data.get("sounds", [])]
        except (json.JSONDecodeError, KeyError, AttributeError, TypeError) as exc:
            raise InvalidInputError(f"malformed sound library {self.path}: {exc}") from exc
        self._sounds = {s.id: s for s in sounds}
        logger.info("loaded %d sound(s) from %s", len(self._sounds), self.path)
        return self

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"sounds": [s.to_dict() for s in self._sounds.values()]}
        self.path.write_text(json.dumps(payload), encoding="utf-8")

    # --------------------------------------------------------------
    def __iter__(self):
        return iter(self._sounds.values())

    def __len__(self) -> int:
        return len(self._sounds)

    def get(self, sound_id: str) -> Optional[CalibratedSound]:
        return self._sounds.get(sound_id)

    def add(
        self,
        name: str,
        signature: Optional[Signature] = None,
        *,
        color: str = DEFAULT_COLOR,
    ) -> CalibratedSound:
        """Add a new sound under a freshly generated id and return it."""
        if not name.strip():
            raise InvalidInputError("sound name must not be empty")
        sound = CalibratedSound(
            id=generate_sound_id(name, self._sounds),
            name=name.strip(),
            color=color,
            signature=signature,
        )
        self._sounds[sound.id] = sound
        return sound

    def set_signature(self, sound_id: str, signature: Signature) -> CalibratedSound:
        """Attach a (new) signature to an existing sound."""
        current = self._sounds[sound_id]
        updated = CalibratedSound(current.id, current.name, current.color, signature)
        self._sounds[sound_id] = updated
        return updated

    def remove(self, sound_id: str) -> bool:
        return self._sounds.pop(sound_id, None) is not None

    def calibrated(self) -> list[CalibratedSound]:
        """Return the sounds that have a signature."""
        return [s for s in self._sounds.values() if s.signature is not None]


__all__ = ["DEFAULT_COLOR", "SoundLibrary", "generate_sound_id"]
