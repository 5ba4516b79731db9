from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections import deque
from collections.abc import AsyncIterator

import numpy as np

from vox_studio.capture import AudioClip, BufferRecorder
from vox_studio.engine import Workstation
from vox_studio.frames import AudioFrame
from vox_studio.interfaces import AudioGraph
from vox_studio.modes import Mode
from vox_studio.recording import SessionRegistry

logger = logging.getLogger(__name__)

Event = dict[str, object]


class StreamClock:
    """Seconds of audio received so far; advances only as blocks arrive."""

    def __init__(self) -> None:
        self._t = 0.0

    def now(self) -> float:
        return self._t

    def advance(self, seconds: float) -> None:
        self._t += float(seconds)


class BrowserMicrophone:
    def __init__(self) -> None:
        self.granted = False
        self._pending: deque[AudioFrame] = deque()

    async def open(self) -> bool:
        return self.granted

    def push(self, frame: AudioFrame) -> None:
        self._pending.append(frame)

    async def frames(self) -> AsyncIterator[AudioFrame]:
        while self._pending:
            yield self._pending.popleft()

    def close(self) -> None:
        self._pending.clear()


class BrowserSynth:
    """Forwards synth calls to the client as ``synth`` events."""

    def __init__(self, outbox: list[Event]) -> None:
        self._outbox = outbox

    def trigger_attack(self, note_name: str) -> None:
        self._outbox.append({"type": "synth", "action": "attack", "note": note_name})

    def trigger_release(self, note_name: str) -> None:
        self._outbox.append({"type": "synth", "action": "release", "note": note_name})

    def trigger_attack_release(self, note_name: str, duration: float, at_time: float) -> None:
        self._outbox.append(
            {
                "type": "synth",
                "action": "attack_release",
                "note": note_name,
                "duration": float(duration),
                "atTime": float(at_time),
            }
        )

    def release_all(self) -> None:
        self._outbox.append({"type": "synth", "action": "release_all"})

    def set_instrument(self, label: str) -> None:
        self._outbox.append({"type": "synth", "action": "instrument", "instrument": label})


class BrowserMonitor:
    def __init__(self, outbox: list[Event]) -> None:
        self._outbox = outbox

    def connect(self, gain: float) -> None:
        self._outbox.append({"type": "monitor", "enabled": True, "gain": float(gain)})

    def disconnect(self) -> None:
        self._outbox.append({"type": "monitor", "enabled": False})


class BrowserPlayback:
    """The client plays the clip and reports ``playback_ended`` when it stops."""

    def __init__(self, outbox: list[Event], registry: SessionRegistry) -> None:
        self._outbox = outbox
        self._registry = registry
        self._done: asyncio.Future[None] | None = None

    def play(self, handle: AudioClip, at_time: float) -> asyncio.Future[None]:
        session_id = next((s.id for s in self._registry.list() if s.audio_handle is handle), None)
        self._done = asyncio.get_running_loop().create_future()
        self._outbox.append(
            {
                "type": "playback_start",
                "sessionId": session_id,
                "audioUrl": f"/api/sessions/{session_id}/audio" if session_id else None,
                "atTime": float(at_time),
                "duration": handle.duration,
            }
        )
        return self._done

    def ended(self) -> bool:
        if self._done is None or self._done.done():
            return False
        self._done.set_result(None)
        return True

    def stop(self) -> None:
        self._outbox.append({"type": "playback_stop"})
        self.ended()


class LiveSession:
    """One websocket client: its own workstation over browser-side collaborators."""

    def __init__(self, session_id: str, registry: SessionRegistry, block_size: int = 1024) -> None:
        self.session_id = session_id
        self.outbox: list[Event] = []
        self.clock = StreamClock()
        self.microphone = BrowserMicrophone()
        self.recorder = BufferRecorder()
        self.playback = BrowserPlayback(self.outbox, registry)
        self.workstation = Workstation(
            AudioGraph(
                microphone=self.microphone,
                synth=BrowserSynth(self.outbox),
                recorder=self.recorder,
                playback=self.playback,
                monitor=BrowserMonitor(self.outbox),
                clock=self.clock,
            ),
            registry=registry,
        )
        self._sample_rate = 44_100
        self._processing_buffer = np.zeros(0, dtype=np.float32)
        self._block_size = int(block_size)
        self._playback_task: asyncio.Task[None] | None = None

    def drain(self) -> list[Event]:
        events = list(self.outbox)
        self.outbox.clear()
        return events

    async def init(
        self,
        *,
        sample_rate: int,
        sensitivity: float,
        gain_boost: float,
        instrument: str,
        mic_granted: bool,
    ) -> list[Event]:
        self._sample_rate = int(sample_rate)
        self.recorder.sample_rate = self._sample_rate
        self.microphone.granted = bool(mic_granted)
        self.workstation.set_calibration(sensitivity=sensitivity, gain_boost=gain_boost)
        self.workstation.set_instrument(instrument)
        await self.workstation.open()
        self.outbox.append({"type": "status", "message": "Session initialized."})
        return self.drain()

    async def set_mode(self, mode: Mode) -> list[Event]:
        released, session = await self.workstation.set_mode(mode)
        self.outbox.extend(t.to_event() for t in released)
        if session is not None:
            self.outbox.append({"type": "session_created", "session": session.to_dict()})
        self.outbox.append({"type": "mode", "mode": self.workstation.mode.value})
        return self.drain()

    def set_calibration(self, *, sensitivity: float | None, gain_boost: float | None) -> list[Event]:
        self.workstation.set_calibration(sensitivity=sensitivity, gain_boost=gain_boost)
        cal = self.workstation.calibration
        self.outbox.append(
            {"type": "calibration", "sensitivity": cal.sensitivity, "gainBoost": cal.gain_boost}
        )
        return self.drain()

    def set_instrument(self, instrument: str) -> list[Event]:
        self.workstation.set_instrument(instrument)
        return self.drain()

    def play_session(self, session_id: str) -> list[Event]:
        self._playback_task = self.workstation.play_session(session_id)
        return self.drain()

    async def playback_ended(self) -> list[Event]:
        session_id = self.workstation.player.session_id
        if self.playback.ended() and self._playback_task is not None:
            await self._playback_task
        self._playback_task = None
        if session_id is not None:
            self.outbox.append({"type": "playback_done", "sessionId": session_id})
        return self.drain()

    def stop_playback(self) -> list[Event]:
        self._halt_playback()
        return self.drain()

    def forget_session(self, session_id: str) -> bool:
        """Stop playing ``session_id`` before it is deleted; events go out with the next reply."""
        if self.workstation.player.session_id != session_id:
            return False
        self._halt_playback()
        return True

    def _halt_playback(self) -> None:
        session_id = self.workstation.player.session_id
        self.workstation.stop_playback()
        self._playback_task = None
        if session_id is not None:
            self.outbox.append({"type": "playback_done", "sessionId": session_id})

    async def process_audio_bytes(self, payload: bytes) -> list[Event]:
        if not payload or not self.workstation.is_open:
            return []

        if len(payload) % 4:
            return [
                {
                    "type": "error",
                    "code": "invalid_audio",
                    "message": f"Audio payload of {len(payload)} bytes is not float32 samples",
                }
            ]
        frame = np.frombuffer(payload, dtype=np.float32)
        self._processing_buffer = np.concatenate((self._processing_buffer, frame))
        while self._processing_buffer.size >= self._block_size:
            block = self._processing_buffer[: self._block_size].copy()
            self._processing_buffer = self._processing_buffer[self._block_size :]
            self.recorder.feed(block)
            self.microphone.push(AudioFrame(block, self._sample_rate))

        async for audio_frame in self.microphone.frames():
            self.clock.advance(audio_frame.seconds)
            result = self.workstation.tick(audio_frame, self.clock.now())
            self.outbox.extend(t.to_event() for t in result.transitions)
            self.outbox.append(result.to_event())
        return self.drain()

    async def close(self) -> None:
        session = await self.workstation.shutdown()
        if session is not None:
            logger.info("Connection %s closed while recording; kept session %s", self.session_id, session.id)
        self.outbox.clear()


class ConnectionManager:
    def __init__(self, registry: SessionRegistry) -> None:
        self.registry = registry
        self._sessions: dict[str, LiveSession] = {}
        self._lock = threading.Lock()

    def create(self) -> LiveSession:
        session_id = uuid.uuid4().hex
        session = LiveSession(session_id, self.registry)
        with self._lock:
            self._sessions[session_id] = session
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def forget_session(self, session_id: str) -> int:
        with self._lock:
            live = list(self._sessions.values())
        return sum(1 for session in live if session.forget_session(session_id))

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)
