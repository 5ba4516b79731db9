from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NoReturn

from vox_studio.errors import RecordingStateError, SessionNotFound
from vox_studio.interfaces import AudioHandle, Recorder

logger = logging.getLogger(__name__)

MIN_NOTE_DURATION = 0.02


@dataclass(frozen=True)
class NoteEvent:
    note_name: str
    start_time: float
    duration: float

    def to_event(self) -> dict[str, object]:
        return {
            "note": self.note_name,
            "startTime": float(self.start_time),
            "duration": float(self.duration),
        }


@dataclass(frozen=True)
class PendingNote:
    note_name: str
    start_offset: float


@dataclass
class RecordingState:
    active: bool = False
    start_epoch: float = 0.0
    notes: list[NoteEvent] = field(default_factory=list)
    pending_note: PendingNote | None = None


@dataclass(frozen=True)
class Session:
    id: str
    created_at: float
    notes: tuple[NoteEvent, ...]
    audio_handle: AudioHandle = field(repr=False)
    instrument_label: str

    @property
    def duration(self) -> float:
        if not self.notes:
            return 0.0
        return max(n.start_time + n.duration for n in self.notes)

    def to_dict(self, *, include_notes: bool = True) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "createdAt": float(self.created_at),
            "instrument": self.instrument_label,
            "noteCount": len(self.notes),
            "duration": self.duration,
        }
        if include_notes:
            payload["notes"] = [n.to_event() for n in self.notes]
        return payload


class RecordingSessionBuilder:
    def __init__(self, recorder: Recorder, *, min_note_duration: float = MIN_NOTE_DURATION) -> None:
        self._recorder = recorder
        self._min_duration = float(min_note_duration)
        self._state = RecordingState()

    @property
    def active(self) -> bool:
        return self._state.active

    @property
    def state(self) -> RecordingState:
        return self._state

    def start_recording(self, now: float) -> None:
        self._state = RecordingState(active=True, start_epoch=float(now))
        self._recorder.start()
        logger.info("Recording started")

    def on_note_on(self, note_name: str, now: float) -> None:
        if not self._state.active:
            _violation("note-on while not recording")
        if self._state.pending_note is not None:
            _violation(
                f"note-on {note_name} while {self._state.pending_note.note_name} is still pending"
            )
        self._state.pending_note = PendingNote(note_name, float(now) - self._state.start_epoch)

    def on_note_off(self, now: float) -> NoteEvent | None:
        pending = self._state.pending_note
        if pending is None:
            _violation("note-off without a pending note")
        # Cleared whether or not the note is kept.
        self._state.pending_note = None
        duration = float(now) - self._state.start_epoch - pending.start_offset
        if duration < self._min_duration:
            logger.debug("Dropped %s: %.3fs is below the minimum", pending.note_name, duration)
            return None
        event = NoteEvent(pending.note_name, pending.start_offset, duration)
        self._state.notes.append(event)
        return event

    async def stop_recording(self, now: float, *, instrument_label: str = "") -> Session | None:
        if not self._state.active:
            _violation("stop while not recording")
        if self._state.pending_note is not None:
            self.on_note_off(now)

        notes = tuple(self._state.notes)
        self._state = RecordingState()
        handle = await self._recorder.stop()
        if handle is None:
            logger.warning("Recorder produced no audio; discarding %d notes", len(notes))
            return None

        session = Session(
            id=uuid.uuid4().hex,
            created_at=time.time(),
            notes=notes,
            audio_handle=handle,
            instrument_label=instrument_label,
        )
        logger.info("Session %s recorded with %d notes", session.id, len(notes))
        return session


def _violation(message: str) -> NoReturn:
    logger.error("Recording contract violated: %s", message)
    raise RecordingStateError(message)


class SessionRegistry:
    def __init__(self, release: Callable[[AudioHandle], None] | None = None) -> None:
        self._sessions: dict[str, Session] = {}
        self._release = release
        self._lock = threading.Lock()

    def add(self, session: Session) -> Session:
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Unknown session: {session_id}")
        return session

    def list(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    def delete(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFound(f"Unknown session: {session_id}")
        if self._release is not None:
            self._release(session.audio_handle)
        logger.info("Session %s deleted", session_id)

    def clear(self) -> None:
        for session in self.list():
            self.delete(session.id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
