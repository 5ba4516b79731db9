from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from vox_studio.errors import PermissionDenied, PlaybackBusyError
from vox_studio.frames import AudioFrame
from vox_studio.interfaces import AudioGraph
from vox_studio.level import Calibration, SignalMonitor, SignalMonitorConfig
from vox_studio.modes import Mode, ModeController
from vox_studio.notes import midi_to_note
from vox_studio.pitch import PitchDetector, PitchDetectorConfig
from vox_studio.playback import DEFAULT_LEAD_IN, PlaybackSynchronizer
from vox_studio.recording import MIN_NOTE_DURATION, RecordingSessionBuilder, Session, SessionRegistry
from vox_studio.tracker import NoteTracker, NoteTransition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkstationConfig:
    lead_in: float = DEFAULT_LEAD_IN
    min_note_duration: float = MIN_NOTE_DURATION
    # Whether the synth follows the voice while recording.
    audible_recording: bool = False
    monitor_gain: float = 1.0
    instrument: str = "Piano"
    monitor: SignalMonitorConfig = field(default_factory=SignalMonitorConfig)
    pitch: PitchDetectorConfig = field(default_factory=PitchDetectorConfig)


@dataclass
class TickResult:
    t: float
    rms: float
    active: bool
    midi: int | None
    transitions: list[NoteTransition]
    mode: Mode
    playing_back: bool

    @property
    def note_name(self) -> str | None:
        return midi_to_note(self.midi) if self.midi is not None else None

    def to_event(self) -> dict[str, object]:
        return {
            "type": "pitch_update",
            "t": float(self.t),
            "rms": float(self.rms),
            "active": bool(self.active),
            "midi": self.midi,
            "note": self.note_name,
            "mode": self.mode.value,
            "playingBack": bool(self.playing_back),
        }


class Workstation:
    """
    Live pitch-to-note engine.

    One ``tick`` runs level gate, pitch detection, note tracking and the
    mode-gated dispatch to synth and recorder before it returns.
    """

    def __init__(
        self,
        graph: AudioGraph,
        *,
        config: WorkstationConfig | None = None,
        calibration: Calibration | None = None,
        registry: SessionRegistry | None = None,
    ) -> None:
        self.graph = graph
        self.config = config or WorkstationConfig()
        self.calibration = calibration or Calibration()
        self.registry = registry if registry is not None else SessionRegistry(release=graph.recorder.release)
        self.instrument = self.config.instrument

        self.monitor = SignalMonitor(self.config.monitor)
        self.pitch = PitchDetector(self.config.pitch)
        self.tracker = NoteTracker()
        self.modes = ModeController(audible_recording=self.config.audible_recording)
        self.recording = RecordingSessionBuilder(
            graph.recorder, min_note_duration=self.config.min_note_duration
        )
        self.player = PlaybackSynchronizer(
            graph.synth, graph.playback, graph.clock, lead_in=self.config.lead_in
        )

        self._opened = False
        self._running = False

    @property
    def mode(self) -> Mode:
        return self.modes.mode

    @property
    def is_open(self) -> bool:
        return self._opened

    async def open(self) -> None:
        if self._opened:
            return
        ok = await self.graph.microphone.open()
        if not ok:
            logger.warning("Microphone access refused")
            raise PermissionDenied("Microphone could not be opened")
        self._opened = True
        logger.info("Microphone open")

    def close(self) -> None:
        self._running = False
        self.monitor.reset()
        if self._opened:
            self.graph.microphone.close()
            self._opened = False

    def set_calibration(self, *, sensitivity: float | None = None, gain_boost: float | None = None) -> None:
        self.calibration.update(sensitivity=sensitivity, gain_boost=gain_boost)

    def set_instrument(self, label: str) -> None:
        self.instrument = str(label)
        set_instrument = getattr(self.graph.synth, "set_instrument", None)
        if set_instrument is not None:
            set_instrument(self.instrument)

    async def set_mode(self, new_mode: Mode | str) -> tuple[list[NoteTransition], Session | None]:
        """
        Switch modes and settle what the old mode left behind.

        Returns the note-off forced on a sounding note (if any) and the session
        produced when leaving ``RECORD``.
        """
        new_mode = Mode(new_mode)
        if new_mode != Mode.IDLE and not self._opened:
            raise PermissionDenied("Open the microphone before choosing a mode")
        old_mode = self.mode
        if new_mode == old_mode:
            return [], None
        if new_mode == Mode.RECORD and self.player.is_playing:
            raise PlaybackBusyError("Stop playback before recording")

        now = self.graph.clock.now()
        old = self.modes.effects(old_mode)
        new = self.modes.effects(new_mode)

        released: list[NoteTransition] = []
        transition = self.tracker.release()
        if transition is not None:
            released.append(transition)
            if old.sound and not self.player.is_playing:
                self.graph.synth.trigger_release(transition.note_name)

        session: Session | None = None
        if old.record and self.recording.active:
            session = await self.recording.stop_recording(now, instrument_label=self.instrument)
            if session is not None:
                self.registry.add(session)
        if old.monitor:
            self.graph.monitor.disconnect()

        self.modes.set_mode(new_mode)

        if new.monitor:
            self.graph.monitor.connect(self.config.monitor_gain)
        if new.record:
            self.recording.start_recording(self.graph.clock.now())
        return released, session

    def tick(self, frame: AudioFrame, now: float | None = None) -> TickResult:
        if now is None:
            now = self.graph.clock.now()
        # Playback owns the synth until its audio ends.
        playing_back = self.player.is_playing

        level, active = self.monitor.process(frame.samples, self.calibration)
        midi = self.pitch.detect(frame, self.calibration.gain_boost) if active else None
        transitions = self.tracker.update(active, midi)

        if transitions and not playing_back:
            self._dispatch(transitions, now)

        return TickResult(
            t=float(now),
            rms=level,
            active=active,
            midi=self.tracker.current,
            transitions=transitions,
            mode=self.mode,
            playing_back=playing_back,
        )

    def _dispatch(self, transitions: list[NoteTransition], now: float) -> None:
        effects = self.modes.effects()
        record = effects.record and self.recording.active
        for transition in transitions:
            if transition.kind == "on":
                if effects.sound:
                    self.graph.synth.trigger_attack(transition.note_name)
                if record:
                    self.recording.on_note_on(transition.note_name, now)
            else:
                if effects.sound:
                    self.graph.synth.trigger_release(transition.note_name)
                if record:
                    self.recording.on_note_off(now)

    def play_session(self, session_id: str) -> asyncio.Task[None]:
        if self.recording.active:
            raise PlaybackBusyError("Stop recording before playing a session back")
        session = self.registry.get(session_id)
        # The live note (if any) would otherwise hang under the playback.
        transition = self.tracker.release()
        if transition is not None and self.modes.should_sound():
            self.graph.synth.trigger_release(transition.note_name)
        return self.player.start(session)

    def stop_playback(self) -> None:
        self.player.stop()

    def delete_session(self, session_id: str) -> None:
        if self.player.session_id == session_id:
            self.player.stop()
        self.registry.delete(session_id)

    async def run(self, on_tick: Callable[[TickResult], None] | None = None) -> None:
        """Pull frames from the microphone until it ends or ``stop`` is called."""
        await self.open()
        self._running = True
        try:
            async for frame in self.graph.microphone.frames():
                if not self._running:
                    break
                result = self.tick(frame, self.graph.clock.now())
                if on_tick is not None:
                    on_tick(result)
        finally:
            self._running = False

    def stop(self) -> None:
        self._running = False

    async def shutdown(self) -> Session | None:
        self.stop()
        self.player.stop()
        _, session = await self.set_mode(Mode.IDLE)
        self.graph.synth.release_all()
        self.close()
        return session
