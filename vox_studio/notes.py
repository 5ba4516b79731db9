from __future__ import annotations

import math
import re

A4_HZ = 440.0
A4_MIDI = 69
MIDI_MIN = 0
MIDI_MAX = 127

NOTE_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
_FLAT_ALIASES = {"Db": "C#", "Eb": "D#", "Gb": "F#", "Ab": "G#", "Bb": "A#"}
_NOTE_RE = re.compile(r"^([A-G](?:#|b)?)(-?\d+)$")


def frequency_to_midi(hz: float) -> int | None:
    if not math.isfinite(hz) or hz <= 0:
        return None
    midi = int(round(A4_MIDI + 12.0 * math.log2(hz / A4_HZ)))
    if midi < MIDI_MIN or midi > MIDI_MAX:
        return None
    return midi


def midi_to_frequency(midi: int) -> float:
    return float(A4_HZ * (2.0 ** ((int(midi) - A4_MIDI) / 12.0)))


def midi_to_note(midi: int) -> str:
    midi = int(midi)
    if midi < MIDI_MIN or midi > MIDI_MAX:
        raise ValueError(f"MIDI note out of range: {midi}")
    # MIDI 60 is C4, so octave -1 starts at MIDI 0.
    octave = midi // 12 - 1
    return f"{NOTE_NAMES[midi % 12]}{octave}"


def note_to_midi(name: str) -> int:
    match = _NOTE_RE.match(name.strip())
    if match is None:
        raise ValueError(f"Not a note name: {name!r}")
    pitch_class, octave = match.group(1), int(match.group(2))
    pitch_class = _FLAT_ALIASES.get(pitch_class, pitch_class)
    if pitch_class not in NOTE_NAMES:
        # Cb, Fb and friends are not used by the name table.
        raise ValueError(f"Unsupported spelling: {name!r}")
    midi = (octave + 1) * 12 + NOTE_NAMES.index(pitch_class)
    if midi < MIDI_MIN or midi > MIDI_MAX:
        raise ValueError(f"Note out of MIDI range: {name!r}")
    return midi
