from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable

from vox_studio.errors import PlaybackBusyError
from vox_studio.interfaces import AudioPlayback, Clock, Synthesizer
from vox_studio.recording import Session

logger = logging.getLogger(__name__)

DEFAULT_LEAD_IN = 0.1


class PlaybackSynchronizer:
    """
    Replays a session's notes through the synth, locked to its audio clip.

    Both streams are started against one epoch ``now() + lead_in`` so the audio
    start latency does not shift the notes.
    """

    def __init__(
        self,
        synth: Synthesizer,
        playback: AudioPlayback,
        clock: Clock,
        *,
        lead_in: float = DEFAULT_LEAD_IN,
    ) -> None:
        self._synth = synth
        self._playback = playback
        self._clock = clock
        self._lead_in = float(lead_in)
        self._session_id: str | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_playing(self) -> bool:
        return self._session_id is not None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def start(self, session: Session) -> asyncio.Task[None]:
        if self._session_id is not None:
            raise PlaybackBusyError(f"Session {self._session_id} is already playing")

        self._session_id = session.id
        epoch = self._clock.now() + self._lead_in
        try:
            completion = self._playback.play(session.audio_handle, epoch)
            for note in session.notes:
                self._synth.trigger_attack_release(note.note_name, note.duration, epoch + note.start_time)
        except Exception:
            self._session_id = None
            raise
        logger.info("Playing session %s (%d notes) at %.3f", session.id, len(session.notes), epoch)
        self._task = asyncio.ensure_future(self._wait(session.id, completion))
        return self._task

    async def play(self, session: Session) -> None:
        await self.start(session)

    def stop(self) -> None:
        if self._session_id is None:
            return
        logger.info("Stopping playback of %s", self._session_id)
        self._playback.stop()
        self._synth.release_all()
        self._session_id = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _wait(self, session_id: str, completion: Awaitable[None]) -> None:
        try:
            await completion
        finally:
            if self._session_id == session_id:
                self._session_id = None
                self._task = None
                logger.info("Playback of %s finished", session_id)
