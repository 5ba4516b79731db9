from __future__ import annotations

import pytest

from vox_studio.modes import Mode, ModeController


def test_starts_idle_with_no_effects() -> None:
    modes = ModeController()
    assert modes.mode == Mode.IDLE
    assert not modes.should_sound()
    assert not modes.should_record()
    assert not modes.should_monitor()


@pytest.mark.parametrize(
    ("mode", "sound", "record", "monitor"),
    [
        (Mode.LIVE_PLAY, True, False, False),
        (Mode.MONITOR, False, False, True),
        (Mode.RECORD, False, True, False),
    ],
)
def test_each_mode_has_one_effect(mode: Mode, sound: bool, record: bool, monitor: bool) -> None:
    modes = ModeController()
    assert modes.set_mode(mode) == Mode.IDLE
    assert (modes.should_sound(), modes.should_record(), modes.should_monitor()) == (sound, record, monitor)


def test_audible_recording_sounds_while_recording() -> None:
    modes = ModeController(audible_recording=True)
    assert modes.should_sound(Mode.RECORD)
    assert modes.should_record(Mode.RECORD)


def test_set_mode_accepts_values_and_rejects_unknown() -> None:
    modes = ModeController()
    modes.set_mode("monitor")
    assert modes.mode == Mode.MONITOR
    with pytest.raises(ValueError):
        modes.set_mode("karaoke")
