from __future__ import annotations

import argparse
import asyncio
import logging

from vox_studio.audio import AudioIOConfig, SoundDeviceMicrophone, SoundDevicePlayback
from vox_studio.capture import BufferRecorder
from vox_studio.engine import TickResult, Workstation, WorkstationConfig
from vox_studio.errors import PermissionDenied
from vox_studio.interfaces import AudioGraph, MonotonicClock
from vox_studio.level import Calibration
from vox_studio.modes import Mode
from vox_studio.synth import NoteSynth

logger = logging.getLogger("vox_studio")


def build_workstation(args: argparse.Namespace) -> tuple[Workstation, NoteSynth]:
    io = AudioIOConfig(sample_rate=args.sample_rate, block_size=args.block_size)
    clock = MonotonicClock()
    recorder = BufferRecorder(sample_rate=io.sample_rate)
    microphone = SoundDeviceMicrophone(io, recorder=recorder)
    synth = NoteSynth(clock, sample_rate=io.sample_rate, block_size=io.block_size)
    graph = AudioGraph(
        microphone=microphone,
        synth=synth,
        recorder=recorder,
        playback=SoundDevicePlayback(clock),
        monitor=microphone,
        clock=clock,
    )
    station = Workstation(
        graph,
        config=WorkstationConfig(audible_recording=args.audible_recording, instrument=args.instrument),
        calibration=Calibration(sensitivity=args.sensitivity, gain_boost=args.gain_boost),
    )
    station.set_instrument(args.instrument)
    return station, synth


def _print_transitions(result: TickResult) -> None:
    for transition in result.transitions:
        print(f"{result.t:9.3f}  {transition.kind:<3}  {transition.note_name}")


async def run(args: argparse.Namespace) -> int:
    station, synth = build_workstation(args)
    try:
        await station.open()
    except PermissionDenied as exc:
        logger.error("%s", exc)
        return 2

    synth.start()
    loop_task = asyncio.create_task(station.run(_print_transitions))
    try:
        await station.set_mode(Mode(args.mode))
        await asyncio.sleep(args.seconds)
        _, session = await station.set_mode(Mode.IDLE)
        if session is not None and args.replay:
            print(f"Replaying session {session.id} ({len(session.notes)} notes)")
            await station.play_session(session.id)
    finally:
        await station.shutdown()
        loop_task.cancel()
        synth.stop()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Sing into the microphone and drive a synth.")
    parser.add_argument("--mode", choices=[m.value for m in Mode if m != Mode.IDLE], default=Mode.LIVE_PLAY.value)
    parser.add_argument("--seconds", type=float, default=15.0)
    parser.add_argument("--sensitivity", type=float, default=0.015)
    parser.add_argument("--gain-boost", type=float, default=2.5)
    parser.add_argument("--instrument", default="Piano")
    parser.add_argument("--sample-rate", type=int, default=44100)
    parser.add_argument("--block-size", type=int, default=1024)
    parser.add_argument("--audible-recording", action="store_true")
    parser.add_argument("--replay", action="store_true", help="play the recorded session back when done")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
