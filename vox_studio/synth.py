from __future__ import annotations

import heapq
import itertools
import logging
import threading
from dataclasses import dataclass
from enum import Enum

import numpy as np
import sounddevice as sd

from vox_studio.interfaces import Clock
from vox_studio.notes import midi_to_frequency, note_to_midi

logger = logging.getLogger(__name__)


class Instrument(str, Enum):
    PIANO = "Piano"
    GUITAR = "Guitar"


@dataclass(frozen=True)
class VoiceProfile:
    harmonics: tuple[float, ...]
    attack: float
    release: float
    decay: float
    sustain: float


_PROFILES = {
    Instrument.PIANO: VoiceProfile(
        harmonics=(1.0, 0.75, 0.5, 0.35, 0.22, 0.16, 0.12, 0.08),
        attack=0.01,
        release=0.08,
        decay=1.6,
        sustain=0.65,
    ),
    Instrument.GUITAR: VoiceProfile(
        harmonics=(1.0, 0.0, 0.55, 0.0, 0.32, 0.0, 0.18, 0.0, 0.12),
        attack=0.003,
        release=0.05,
        decay=0.55,
        sustain=0.25,
    ),
}


@dataclass
class _Voice:
    freq: float
    phase: float
    age: int
    releasing: bool
    release_remaining: int
    attack_samples: int
    release_samples: int
    decay_samples: int
    sustain_floor: float
    harmonics: tuple[float, ...]


class NoteSynth:
    """
    Additive synth with a clock-driven event queue.

    ``trigger_attack_release`` queues an attack and a release at absolute clock
    times; the output callback applies every event whose time has come.
    """

    def __init__(self, clock: Clock, sample_rate: int = 44100, block_size: int = 1024) -> None:
        self._clock = clock
        self._sample_rate = int(sample_rate)
        self._block_size = int(block_size)
        self._instrument = Instrument.PIANO
        self._voices: dict[str, _Voice] = {}
        self._pending: list[tuple[float, int, str, str]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()
        self._stream: sd.OutputStream | None = None
        self._base_gain = 0.12
        self._soft_clip_drive = 1.6

    def start(self) -> None:
        if self._stream is not None:
            return
        self._stream = sd.OutputStream(
            samplerate=self._sample_rate,
            channels=1,
            blocksize=self._block_size,
            dtype="float32",
            callback=self._callback,
        )
        self._stream.start()

    def stop(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        finally:
            self._stream = None

    def set_instrument(self, instrument: Instrument | str) -> None:
        try:
            self._instrument = Instrument(instrument)
        except ValueError:
            logger.warning("Unknown instrument %r; using piano", instrument)
            self._instrument = Instrument.PIANO

    def trigger_attack(self, note_name: str) -> None:
        with self._lock:
            self._attack(note_name)

    def trigger_release(self, note_name: str) -> None:
        with self._lock:
            self._release(note_name)

    def trigger_attack_release(self, note_name: str, duration: float, at_time: float) -> None:
        with self._lock:
            heapq.heappush(self._pending, (float(at_time), next(self._seq), "on", note_name))
            heapq.heappush(self._pending, (float(at_time) + float(duration), next(self._seq), "off", note_name))

    def release_all(self) -> None:
        with self._lock:
            self._pending.clear()
            for voice in self._voices.values():
                voice.releasing = True

    def _attack(self, note_name: str) -> None:
        freq = midi_to_frequency(note_to_midi(note_name))
        profile = _PROFILES[self._instrument]
        if note_name in self._voices:
            # Let the old voice ring out under a private key.
            prev = self._voices.pop(note_name)
            prev.releasing = True
            self._voices[f"{note_name}#rel{next(self._seq)}"] = prev
        release_samples = max(32, int(profile.release * self._sample_rate))
        self._voices[note_name] = _Voice(
            freq=freq,
            phase=0.0,
            age=0,
            releasing=False,
            release_remaining=release_samples,
            attack_samples=max(8, int(profile.attack * self._sample_rate)),
            release_samples=release_samples,
            decay_samples=max(1, int(profile.decay * self._sample_rate)),
            sustain_floor=profile.sustain,
            harmonics=profile.harmonics,
        )

    def _release(self, note_name: str) -> None:
        voice = self._voices.get(note_name)
        if voice is not None:
            voice.releasing = True

    def _apply_due_events(self, now: float) -> None:
        with self._lock:
            while self._pending and self._pending[0][0] <= now:
                _, _, kind, note_name = heapq.heappop(self._pending)
                if kind == "on":
                    self._attack(note_name)
                else:
                    self._release(note_name)

    def render(self, frames: int) -> np.ndarray:
        self._apply_due_events(self._clock.now())
        out = np.zeros(frames, dtype=np.float32)
        t = np.arange(frames, dtype=np.float32)

        with self._lock:
            voices = list(self._voices.items())
        if not voices:
            return out

        nyquist = 0.48 * float(self._sample_rate)
        finished: list[str] = []
        for key, voice in voices:
            omega = 2.0 * np.pi * voice.freq / float(self._sample_rate)
            phase = voice.phase + omega * t
            wave = np.zeros(frames, dtype=np.float32)
            for i, amp in enumerate(voice.harmonics, start=1):
                if voice.freq * i >= nyquist:
                    break
                wave += amp * np.sin(phase * i)

            env = np.ones(frames, dtype=np.float32)
            if voice.age < voice.attack_samples:
                n = min(frames, voice.attack_samples - voice.age)
                env[:n] = np.linspace(
                    float(voice.age) / float(voice.attack_samples), 1.0, n, endpoint=False, dtype=np.float32
                )
            age_samples = voice.age + np.arange(frames, dtype=np.float32)
            env *= voice.sustain_floor + (1.0 - voice.sustain_floor) * np.exp(
                -age_samples / float(voice.decay_samples)
            )
            if voice.releasing:
                start = float(voice.release_remaining) / float(voice.release_samples)
                end = max(0.0, float(voice.release_remaining - frames) / float(voice.release_samples))
                env *= np.linspace(start, end, frames, endpoint=False, dtype=np.float32)
                voice.release_remaining -= frames
                if voice.release_remaining <= 0:
                    finished.append(key)

            out += wave * env
            voice.age += frames
            voice.phase = float((phase[-1] + omega) % (2.0 * np.pi))

        if finished:
            with self._lock:
                for key in finished:
                    self._voices.pop(key, None)

        out *= self._base_gain
        drive = float(self._soft_clip_drive)
        return (np.tanh(out * drive) / np.tanh(drive)).astype(np.float32)

    def _callback(self, outdata, frames, time_info, status) -> None:  # noqa: ARG002
        outdata[:] = self.render(frames).reshape(-1, 1)
