from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable

import numpy as np
import pytest

from vox_studio.engine import Workstation, WorkstationConfig
from vox_studio.frames import AudioFrame
from vox_studio.interfaces import AudioGraph, ManualClock

SAMPLE_RATE = 44_100
BLOCK = 1024


class FakeMicrophone:
    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self.queued: list[AudioFrame] = []
        self.closed = False

    async def open(self) -> bool:
        return self.granted

    async def frames(self) -> AsyncIterator[AudioFrame]:
        for frame in self.queued:
            yield frame

    def close(self) -> None:
        self.closed = True


class FakeSynth:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def trigger_attack(self, note_name: str) -> None:
        self.calls.append(("attack", note_name))

    def trigger_release(self, note_name: str) -> None:
        self.calls.append(("release", note_name))

    def trigger_attack_release(self, note_name: str, duration: float, at_time: float) -> None:
        self.calls.append(("attack_release", note_name, duration, at_time))

    def release_all(self) -> None:
        self.calls.append(("release_all",))


class FakeRecorder:
    def __init__(self) -> None:
        self.started = 0
        self.stopped = 0
        self.handle: object | None = "clip"
        self.released: list[object] = []

    def start(self) -> None:
        self.started += 1

    async def stop(self) -> object | None:
        self.stopped += 1
        return self.handle

    def release(self, handle: object) -> None:
        self.released.append(handle)


class FakePlayback:
    def __init__(self) -> None:
        self.started: list[tuple[object, float]] = []
        self.stopped = 0
        self.done: asyncio.Future[None] | None = None

    def play(self, handle: object, at_time: float) -> asyncio.Future[None]:
        self.started.append((handle, at_time))
        self.done = asyncio.get_running_loop().create_future()
        return self.done

    def finish(self) -> None:
        if self.done is not None and not self.done.done():
            self.done.set_result(None)

    def stop(self) -> None:
        self.stopped += 1
        self.finish()


class FakeMonitor:
    def __init__(self) -> None:
        self.gain: float | None = None
        self.history: list[str] = []

    def connect(self, gain: float) -> None:
        self.gain = gain
        self.history.append("connect")

    def disconnect(self) -> None:
        self.gain = None
        self.history.append("disconnect")


def sine(freq: float, amplitude: float = 0.3, n: int = BLOCK, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    t = np.arange(n, dtype=np.float32) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


@pytest.fixture
def tone() -> Callable[..., AudioFrame]:
    def make(freq: float, amplitude: float = 0.3) -> AudioFrame:
        return AudioFrame(sine(freq, amplitude), SAMPLE_RATE)

    return make


@pytest.fixture
def silence() -> AudioFrame:
    return AudioFrame(np.zeros(BLOCK, dtype=np.float32), SAMPLE_RATE)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def graph(clock: ManualClock) -> AudioGraph:
    return AudioGraph(
        microphone=FakeMicrophone(),
        synth=FakeSynth(),
        recorder=FakeRecorder(),
        playback=FakePlayback(),
        monitor=FakeMonitor(),
        clock=clock,
    )


@pytest.fixture
def station(graph: AudioGraph) -> Workstation:
    return Workstation(graph, config=WorkstationConfig())
