from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    IDLE = "idle"
    LIVE_PLAY = "live_play"
    MONITOR = "monitor"
    RECORD = "record"


@dataclass(frozen=True)
class ModeEffects:
    sound: bool = False
    record: bool = False
    monitor: bool = False


def mode_effects(mode: Mode, *, audible_recording: bool = False) -> ModeEffects:
    table = {
        Mode.IDLE: ModeEffects(),
        Mode.LIVE_PLAY: ModeEffects(sound=True),
        Mode.MONITOR: ModeEffects(monitor=True),
        Mode.RECORD: ModeEffects(sound=audible_recording, record=True),
    }
    return table[Mode(mode)]


class ModeController:
    def __init__(self, *, audible_recording: bool = False) -> None:
        self._mode = Mode.IDLE
        self._audible_recording = bool(audible_recording)

    @property
    def mode(self) -> Mode:
        return self._mode

    def set_mode(self, new_mode: Mode | str) -> Mode:
        """Overwrite the mode and return the previous one. Emits no note events."""
        previous = self._mode
        self._mode = Mode(new_mode)
        if previous != self._mode:
            logger.info("Mode %s -> %s", previous.value, self._mode.value)
        return previous

    def effects(self, mode: Mode | None = None) -> ModeEffects:
        return mode_effects(self._mode if mode is None else mode, audible_recording=self._audible_recording)

    def should_sound(self, mode: Mode | None = None) -> bool:
        return self.effects(mode).sound

    def should_record(self, mode: Mode | None = None) -> bool:
        return self.effects(mode).record

    def should_monitor(self, mode: Mode | None = None) -> bool:
        return self.effects(mode).monitor
