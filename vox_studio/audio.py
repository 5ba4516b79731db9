from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator
from dataclasses import dataclass

import numpy as np
import sounddevice as sd

from vox_studio.capture import AudioClip, BufferRecorder
from vox_studio.frames import AudioFrame
from vox_studio.interfaces import Clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioIOConfig:
    sample_rate: int = 44100
    channels: int = 1
    block_size: int = 1024
    queue_blocks: int = 32


class SoundDeviceMicrophone:
    """
    Duplex sounddevice stream.

    Input blocks go to an asyncio queue for the tick loop and to the recorder tap.
    The output side carries the direct monitor path (input times gain) while
    connected and silence otherwise.
    """

    def __init__(self, config: AudioIOConfig | None = None, recorder: BufferRecorder | None = None) -> None:
        self._cfg = config or AudioIOConfig()
        self._recorder = recorder
        self._lock = threading.Lock()
        self._stream: sd.Stream | None = None
        self._queue: asyncio.Queue[AudioFrame | None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._monitor_gain = 0.0

    async def open(self) -> bool:
        if self._stream is not None:
            return True
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._cfg.queue_blocks)

        def callback(indata, outdata, frames, time_info, status) -> None:  # noqa: ARG001
            mono = np.asarray(indata[:, 0], dtype=np.float32).copy()
            with self._lock:
                gain = self._monitor_gain
            if gain > 0.0:
                outdata[:] = np.clip(mono * gain, -1.0, 1.0).reshape(-1, 1)
            else:
                outdata.fill(0)
            if status:
                # Drop frames on over/underflow; the next block resumes analysis.
                return
            if self._recorder is not None:
                self._recorder.feed(mono)
            self._loop.call_soon_threadsafe(self._enqueue, AudioFrame(mono, self._cfg.sample_rate))

        try:
            self._stream = sd.Stream(
                samplerate=self._cfg.sample_rate,
                channels=self._cfg.channels,
                blocksize=self._cfg.block_size,
                dtype="float32",
                callback=callback,
            )
            self._stream.start()
        except sd.PortAudioError as exc:
            logger.error("Cannot open audio input: %s", exc)
            self._stream = None
            return False
        return True

    def _enqueue(self, frame: AudioFrame | None) -> None:
        if self._queue is None:
            return
        if self._queue.full():
            # Analysis fell behind; keep the newest audio.
            self._queue.get_nowait()
        self._queue.put_nowait(frame)

    async def frames(self) -> AsyncIterator[AudioFrame]:
        if self._queue is None:
            return
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame

    def close(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        finally:
            self._stream = None
            if self._loop is not None:
                self._loop.call_soon_threadsafe(self._enqueue, None)

    def connect(self, gain: float) -> None:
        with self._lock:
            self._monitor_gain = max(0.0, float(gain))

    def disconnect(self) -> None:
        with self._lock:
            self._monitor_gain = 0.0


class SoundDevicePlayback:
    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._handles: list[asyncio.TimerHandle] = []
        self._done: asyncio.Future[None] | None = None

    def play(self, handle: AudioClip, at_time: float) -> asyncio.Future[None]:
        loop = asyncio.get_running_loop()
        self.stop()
        done: asyncio.Future[None] = loop.create_future()
        self._done = done
        delay = max(0.0, float(at_time) - self._clock.now())
        self._handles = [
            loop.call_later(delay, self._begin, handle),
            loop.call_later(delay + handle.duration, self._finish, done),
        ]
        return done

    def _begin(self, clip: AudioClip) -> None:
        if clip.released:
            return
        sd.play(clip.samples, samplerate=clip.sample_rate, blocking=False)

    def _finish(self, done: asyncio.Future[None]) -> None:
        if not done.done():
            done.set_result(None)

    def stop(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles = []
        if self._done is not None:
            sd.stop()
            self._finish(self._done)
            self._done = None
