from __future__ import annotations

import numpy as np
import pytest

from vox_studio.level import Calibration, SignalMonitor, boosted_rms


def test_rms_includes_gain_boost() -> None:
    samples = np.full(512, 0.1, dtype=np.float32)
    assert boosted_rms(samples, 2.0) == pytest.approx(0.2, rel=1e-5)


def test_level_is_single_pole_smoothed() -> None:
    monitor = SignalMonitor()
    cal = Calibration(sensitivity=0.04, gain_boost=1.0)
    samples = np.full(512, 0.1, dtype=np.float32)

    level, active = monitor.process(samples, cal)
    assert level == pytest.approx(0.03, rel=1e-5)
    assert not active

    level, active = monitor.process(samples, cal)
    assert level == pytest.approx(0.3 * 0.1 + 0.7 * 0.03, rel=1e-5)
    assert active


def test_quiet_input_never_opens_gate() -> None:
    monitor = SignalMonitor()
    cal = Calibration(sensitivity=0.015, gain_boost=2.5)
    rng = np.random.default_rng(1)
    for _ in range(200):
        _, active = monitor.process(0.002 * rng.standard_normal(1024), cal)
        assert not active


def test_empty_frame_counts_as_silence() -> None:
    monitor = SignalMonitor()
    level, active = monitor.process(np.zeros(0, dtype=np.float32), Calibration())
    assert level == 0.0
    assert not active


def test_calibration_rejects_bad_values() -> None:
    cal = Calibration()
    with pytest.raises(ValueError):
        cal.update(gain_boost=0.0)
    with pytest.raises(ValueError):
        cal.update(sensitivity=-1.0)
    cal.update(sensitivity=0.05)
    assert cal.sensitivity == 0.05
    assert cal.gain_boost == 2.5
