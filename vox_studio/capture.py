from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class AudioClip:
    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return float(self.samples.size) / float(self.sample_rate)

    @property
    def released(self) -> bool:
        return self.samples.size == 0


class BufferRecorder:
    """Keeps microphone blocks in memory between ``start`` and ``stop``."""

    def __init__(self, sample_rate: int = 44100, max_seconds: float = 600.0) -> None:
        self.sample_rate = int(sample_rate)
        self._limit = int(max_seconds * self.sample_rate)
        self._frames: list[np.ndarray] = []
        self._samples = 0
        self._recording = False
        self._limit_hit = False
        self._lock = threading.Lock()

    @property
    def is_recording(self) -> bool:
        return self._recording

    def start(self) -> None:
        with self._lock:
            self._frames = []
            self._samples = 0
            self._limit_hit = False
            self._recording = True

    def feed(self, block: np.ndarray) -> None:
        with self._lock:
            if not self._recording:
                return
            remaining = self._limit - self._samples
            if remaining <= 0:
                if not self._limit_hit:
                    logger.warning("Recording limit reached; further audio is dropped")
                    self._limit_hit = True
                return
            data = np.asarray(block, dtype=np.float32)[:remaining].copy()
            self._frames.append(data)
            self._samples += int(data.size)

    async def stop(self) -> AudioClip | None:
        with self._lock:
            frames = self._frames
            self._frames = []
            self._samples = 0
            self._recording = False
        if not frames:
            return None
        samples = np.concatenate(frames).astype(np.float32, copy=False)
        if samples.size == 0:
            return None
        return AudioClip(samples=samples, sample_rate=self.sample_rate)

    def release(self, handle: AudioClip) -> None:
        release_clip(handle)


def release_clip(handle: AudioClip) -> None:
    handle.samples = np.zeros(0, dtype=np.float32)
