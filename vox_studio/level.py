from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class Calibration:
    # Written by the calibration wizard; read on every tick.
    sensitivity: float = 0.015
    gain_boost: float = 2.5

    def update(self, *, sensitivity: float | None = None, gain_boost: float | None = None) -> None:
        if sensitivity is not None:
            if sensitivity < 0:
                raise ValueError("sensitivity must be non-negative")
            self.sensitivity = float(sensitivity)
        if gain_boost is not None:
            if gain_boost <= 0:
                raise ValueError("gain_boost must be positive")
            self.gain_boost = float(gain_boost)
        logger.debug("Calibration now sensitivity=%.4f gain_boost=%.2f", self.sensitivity, self.gain_boost)


@dataclass(frozen=True)
class SignalMonitorConfig:
    # Weight of the newest frame in the single-pole smoother.
    smoothing: float = 0.3


class SignalMonitor:
    """Smoothed RMS loudness and the "signal present" gate."""

    def __init__(self, config: SignalMonitorConfig | None = None) -> None:
        self._cfg = config or SignalMonitorConfig()
        self._level = 0.0

    @property
    def level(self) -> float:
        return self._level

    def process(self, samples: np.ndarray, calibration: Calibration) -> tuple[float, bool]:
        current = boosted_rms(samples, calibration.gain_boost)
        alpha = float(self._cfg.smoothing)
        self._level = alpha * current + (1.0 - alpha) * self._level
        return self._level, self._level > calibration.sensitivity

    def reset(self) -> None:
        self._level = 0.0


def boosted_rms(samples: np.ndarray, gain: float) -> float:
    x = np.asarray(samples, dtype=np.float32)
    if x.size == 0:
        return 0.0
    boosted = x * np.float32(gain)
    return float(np.sqrt(np.mean(np.square(boosted))))
