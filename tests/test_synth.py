from __future__ import annotations

import numpy as np
import pytest

from vox_studio.interfaces import ManualClock

try:
    from vox_studio.synth import NoteSynth
except OSError:  # sounddevice loads PortAudio at import time
    pytest.skip('PortAudio is not available', allow_module_level=True)

BLOCK = 256


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def synth(clock: ManualClock) -> NoteSynth:
    return NoteSynth(clock, sample_rate=8000, block_size=BLOCK)


def _silent(block: np.ndarray) -> bool:
    return bool(np.all(block == 0.0))


def test_scheduled_note_waits_for_its_start_time(synth, clock) -> None:
    synth.trigger_attack_release('A4', 0.5, at_time=1.0)

    assert _silent(synth.render(BLOCK))
    clock.t = 0.99
    assert _silent(synth.render(BLOCK))

    clock.t = 1.0
    block = synth.render(BLOCK)
    assert block.dtype == np.float32
    assert np.max(np.abs(block)) > 0.0


def test_scheduled_release_fades_the_voice_out(synth, clock) -> None:
    synth.trigger_attack_release('C4', 0.25, at_time=0.0)
    assert not _silent(synth.render(BLOCK))

    clock.t = 0.3
    # The release tail spans a few blocks at this rate.
    tail = [synth.render(BLOCK) for _ in range(3)]
    assert not _silent(tail[0])
    assert _silent(synth.render(BLOCK))


def test_release_all_drops_queued_events(synth, clock) -> None:
    synth.trigger_attack_release('E4', 0.5, at_time=2.0)
    synth.release_all()

    clock.t = 2.1
    assert _silent(synth.render(BLOCK))


def test_live_attack_sounds_immediately_and_stays_bounded(synth) -> None:
    synth.trigger_attack('A4')
    synth.trigger_attack('E5')
    block = synth.render(BLOCK)
    assert np.max(np.abs(block)) > 0.0
    assert np.max(np.abs(block)) <= 1.0
