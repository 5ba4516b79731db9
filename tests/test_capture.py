from __future__ import annotations

import asyncio

import numpy as np

from vox_studio.capture import BufferRecorder


def test_recorder_keeps_audio_between_start_and_stop() -> None:
    recorder = BufferRecorder(sample_rate=8_000)
    recorder.feed(np.ones(100, dtype=np.float32))
    recorder.start()
    recorder.feed(np.full(400, 0.5, dtype=np.float32))
    recorder.feed(np.full(400, -0.5, dtype=np.float32))

    clip = asyncio.run(recorder.stop())
    assert clip is not None
    assert clip.samples.size == 800
    assert clip.duration == 0.1
    assert not recorder.is_recording

    recorder.release(clip)
    assert clip.released


def test_recorder_without_audio_returns_none() -> None:
    recorder = BufferRecorder()
    recorder.start()
    assert asyncio.run(recorder.stop()) is None


def test_recorder_stops_at_limit() -> None:
    recorder = BufferRecorder(sample_rate=1_000, max_seconds=0.5)
    recorder.start()
    for _ in range(10):
        recorder.feed(np.zeros(100, dtype=np.float32))
    clip = asyncio.run(recorder.stop())
    assert clip.samples.size == 500
