from __future__ import annotations

import time
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass
from typing import Any, Protocol

from vox_studio.frames import AudioFrame

# Recorders hand back whatever they capture; the core only forwards it.
AudioHandle = Any


class Clock(Protocol):
    def now(self) -> float: ...


class Microphone(Protocol):
    async def open(self) -> bool: ...

    def frames(self) -> AsyncIterator[AudioFrame]: ...

    def close(self) -> None: ...


class Synthesizer(Protocol):
    def trigger_attack(self, note_name: str) -> None: ...

    def trigger_release(self, note_name: str) -> None: ...

    def trigger_attack_release(self, note_name: str, duration: float, at_time: float) -> None: ...

    def release_all(self) -> None: ...


class Recorder(Protocol):
    def start(self) -> None: ...

    async def stop(self) -> AudioHandle | None: ...

    def release(self, handle: AudioHandle) -> None: ...


class AudioPlayback(Protocol):
    def play(self, handle: AudioHandle, at_time: float) -> Awaitable[None]: ...

    def stop(self) -> None: ...


class MonitorPath(Protocol):
    def connect(self, gain: float) -> None: ...

    def disconnect(self) -> None: ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    def __init__(self, start: float = 0.0) -> None:
        self.t = float(start)

    def now(self) -> float:
        return self.t

    def advance(self, seconds: float) -> float:
        self.t += float(seconds)
        return self.t


@dataclass
class AudioGraph:
    """Everything outside the core that a workstation talks to."""

    microphone: Microphone
    synth: Synthesizer
    recorder: Recorder
    playback: AudioPlayback
    monitor: MonitorPath
    clock: Clock
