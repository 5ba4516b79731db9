from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from vox_studio.frames import AudioFrame
from vox_studio.notes import frequency_to_midi


@dataclass(frozen=True)
class PitchDetectorConfig:
    min_hz: float = 60.0
    max_hz: float = 1100.0
    silence_rms: float = 1e-3  # measured after gain boost
    clarity_min: float = 0.6
    # A key maximum must reach this share of the strongest one to be picked.
    peak_ratio: float = 0.9


class PitchDetector:
    """
    Per-frame fundamental estimate.

    Strategy:
    - Gate by boosted RMS.
    - FFT autocorrelation normalised into an NSDF so long lags are not penalised.
    - First key maximum within [sr/max_hz, sr/min_hz] close to the strongest one.
    - Parabolic interpolation for sub-sample lag.
    - Clarity (NSDF peak height) as confidence.
    """

    def __init__(self, config: PitchDetectorConfig | None = None) -> None:
        self._cfg = config or PitchDetectorConfig()
        self.last_hz: float | None = None
        self.last_clarity = 0.0

    @property
    def config(self) -> PitchDetectorConfig:
        return self._cfg

    def estimate_hz(self, frame: AudioFrame, gain_boost: float = 1.0) -> float | None:
        self.last_hz = None
        self.last_clarity = 0.0
        if frame.size < 4 or frame.sample_rate <= 0:
            return None

        x = np.asarray(frame.samples, dtype=np.float64) * float(gain_boost)
        rms = float(np.sqrt(np.mean(np.square(x))))
        if rms < self._cfg.silence_rms:
            return None

        hz, clarity = _nsdf_pitch(
            x,
            frame.sample_rate,
            self._cfg.min_hz,
            self._cfg.max_hz,
            self._cfg.peak_ratio,
        )
        self.last_clarity = clarity
        if hz is None or clarity < self._cfg.clarity_min:
            return None
        self.last_hz = hz
        return hz

    def detect(self, frame: AudioFrame, gain_boost: float = 1.0) -> int | None:
        hz = self.estimate_hz(frame, gain_boost)
        if hz is None:
            return None
        return frequency_to_midi(hz)


def _nsdf(x: np.ndarray) -> np.ndarray:
    x = x - float(np.mean(x))
    n = int(x.size)

    # Linear (not circular) autocorrelation: pad to at least 2n before the FFT.
    size = 1 << int(np.ceil(np.log2(2 * n)))
    spec = np.fft.rfft(x, n=size)
    r = np.fft.irfft(np.abs(spec) ** 2, n=size)[:n]

    # m[tau] = sum x[j]^2 over the two overlapping windows at lag tau.
    cs = np.concatenate(([0.0], np.cumsum(x * x)))
    tau = np.arange(n)
    m = cs[n - tau] + (cs[n] - cs[tau])
    out = np.zeros(n, dtype=np.float64)
    np.divide(2.0 * r, m, out=out, where=m > 1e-12)
    return out


def _nsdf_pitch(
    x: np.ndarray, sample_rate: int, min_hz: float, max_hz: float, peak_ratio: float
) -> tuple[float | None, float]:
    nsdf = _nsdf(x)
    n = int(nsdf.size)

    min_lag = max(2, int(sample_rate / float(max_hz)))
    max_lag = min(int(np.ceil(sample_rate / float(min_hz))), n - 2)
    if max_lag <= min_lag:
        return None, 0.0

    negative = np.where(nsdf[: max_lag + 1] < 0.0)[0]
    if negative.size == 0:
        return None, 0.0

    # Key maxima: the highest point of every positive lobe after the first zero crossing.
    peaks: list[int] = []
    best: int | None = None
    end = max_lag + 1
    for i in range(int(negative[0]), end):
        v = nsdf[i]
        if v > 0.0:
            if best is None or v > nsdf[best]:
                best = i
        elif best is not None:
            peaks.append(best)
            best = None
    if best is not None and best < end - 1:
        peaks.append(best)

    peaks = [p for p in peaks if p >= min_lag]
    if not peaks:
        return None, 0.0

    top = max(float(nsdf[p]) for p in peaks)
    i = next(p for p in peaks if float(nsdf[p]) >= peak_ratio * top)
    peak = float(nsdf[i])

    # Parabolic interpolation around the peak for sub-sample accuracy.
    y0, y1, y2 = float(nsdf[i - 1]), float(nsdf[i]), float(nsdf[i + 1])
    denom = y0 - 2.0 * y1 + y2
    if abs(denom) > 1e-12:
        lag = float(i) + 0.5 * (y0 - y2) / denom
    else:
        lag = float(i)

    if lag <= 0.0:
        return None, 0.0

    hz = float(sample_rate) / lag
    conf = float(max(0.0, min(1.0, peak)))
    if not (min_hz <= hz <= max_hz):
        return None, conf
    return hz, conf
