from __future__ import annotations

import numpy as np

from vox_studio.frames import AudioFrame
from vox_studio.pitch import PitchDetector


def _frame(wave: np.ndarray, sample_rate: int = 44_100) -> AudioFrame:
    return AudioFrame(wave.astype(np.float32), sample_rate)


def _sine(freq: float, n: int = 1024, sample_rate: int = 44_100, amplitude: float = 0.3) -> np.ndarray:
    t = np.arange(n, dtype=np.float32) / sample_rate
    return amplitude * np.sin(2 * np.pi * freq * t)


def test_a4_sine_maps_to_midi_69() -> None:
    detector = PitchDetector()
    assert detector.detect(_frame(_sine(440.0))) == 69
    assert abs(detector.last_hz - 440.0) < 2.0


def test_middle_c_sine_maps_to_midi_60() -> None:
    detector = PitchDetector()
    assert detector.detect(_frame(_sine(261.63))) == 60


def test_gain_boost_does_not_move_the_pitch() -> None:
    detector = PitchDetector()
    assert detector.detect(_frame(_sine(261.63, amplitude=0.05)), gain_boost=2.5) == 60


def test_harmonic_tone_reports_fundamental() -> None:
    t = np.arange(2048, dtype=np.float32) / 44_100
    wave = 0.3 * np.sin(2 * np.pi * 220.0 * t)
    wave += 0.15 * np.sin(2 * np.pi * 440.0 * t)
    wave += 0.09 * np.sin(2 * np.pi * 660.0 * t)
    assert PitchDetector().detect(_frame(wave)) == 57


def test_silence_has_no_pitch() -> None:
    assert PitchDetector().detect(_frame(np.zeros(1024))) is None


def test_noise_has_no_pitch() -> None:
    rng = np.random.default_rng(0)
    detector = PitchDetector()
    assert detector.detect(_frame(0.3 * rng.standard_normal(1024))) is None
    assert detector.last_clarity < detector.config.clarity_min


def test_tiny_frame_has_no_pitch() -> None:
    assert PitchDetector().detect(_frame(np.array([0.1, -0.1]))) is None
