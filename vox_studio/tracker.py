from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from vox_studio.notes import midi_to_note

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteTransition:
    kind: Literal["on", "off"]
    midi: int
    note_name: str

    def to_event(self) -> dict[str, object]:
        return {
            "type": "note_on" if self.kind == "on" else "note_off",
            "midi": int(self.midi),
            "note": self.note_name,
        }


def _on(midi: int) -> NoteTransition:
    return NoteTransition("on", midi, midi_to_note(midi))


def _off(midi: int) -> NoteTransition:
    return NoteTransition("off", midi, midi_to_note(midi))


class NoteTracker:
    """
    Edge-triggered note state machine: NoNote <-> SoundingNote(midi).

    Only changes produce transitions. Moving between two sounding notes emits the
    off for the old note before the on for the new one, never an overlap.
    """

    def __init__(self) -> None:
        self._current: int | None = None

    @property
    def current(self) -> int | None:
        return self._current

    @property
    def sounding(self) -> bool:
        return self._current is not None

    def update(self, active: bool, midi: int | None) -> list[NoteTransition]:
        prev = self._current
        if not active or midi is None:
            if prev is None:
                return []
            self._current = None
            return [_off(prev)]

        if prev is None:
            self._current = midi
            return [_on(midi)]
        if prev == midi:
            return []

        logger.debug("Retrigger %s -> %s", midi_to_note(prev), midi_to_note(midi))
        self._current = midi
        return [_off(prev), _on(midi)]

    def release(self) -> NoteTransition | None:
        if self._current is None:
            return None
        transition = _off(self._current)
        self._current = None
        return transition
