from __future__ import annotations

import asyncio

import pytest

from vox_studio.errors import RecordingStateError, SessionNotFound
from vox_studio.recording import NoteEvent, RecordingSessionBuilder, Session, SessionRegistry


def test_short_note_is_dropped(graph) -> None:
    builder = RecordingSessionBuilder(graph.recorder)
    builder.start_recording(0.0)
    builder.on_note_on("A4", 1.0)
    assert builder.on_note_off(1.01) is None
    assert builder.state.pending_note is None

    session = asyncio.run(builder.stop_recording(2.0))
    assert session is not None
    assert session.notes == ()


def test_stop_flushes_pending_note(graph) -> None:
    builder = RecordingSessionBuilder(graph.recorder)
    builder.start_recording(10.0)
    builder.on_note_on("C4", 11.0)

    session = asyncio.run(builder.stop_recording(11.5, instrument_label="Piano"))
    assert session is not None
    assert len(session.notes) == 1
    note = session.notes[0]
    assert note.note_name == "C4"
    assert note.start_time == pytest.approx(1.0)
    assert note.duration == pytest.approx(0.5)
    assert session.instrument_label == "Piano"
    assert session.audio_handle == "clip"
    assert not builder.active


def test_notes_keep_start_order(graph) -> None:
    builder = RecordingSessionBuilder(graph.recorder)
    builder.start_recording(0.0)
    for i, name in enumerate(["C4", "D4", "E4"]):
        builder.on_note_on(name, i * 0.5)
        builder.on_note_off(i * 0.5 + 0.25)

    session = asyncio.run(builder.stop_recording(2.0))
    starts = [n.start_time for n in session.notes]
    assert starts == sorted(starts)
    assert [n.note_name for n in session.notes] == ["C4", "D4", "E4"]
    assert session.duration == pytest.approx(1.25)


def test_missing_audio_discards_notes(graph) -> None:
    graph.recorder.handle = None
    builder = RecordingSessionBuilder(graph.recorder)
    builder.start_recording(0.0)
    builder.on_note_on("A4", 0.1)
    builder.on_note_off(0.6)

    assert asyncio.run(builder.stop_recording(1.0)) is None
    assert not builder.active
    assert builder.state.notes == []


def test_second_note_on_is_a_contract_violation(graph) -> None:
    builder = RecordingSessionBuilder(graph.recorder)
    builder.start_recording(0.0)
    builder.on_note_on("A4", 0.1)
    with pytest.raises(RecordingStateError):
        builder.on_note_on("B4", 0.2)


def test_note_off_without_note_on_is_a_contract_violation(graph) -> None:
    builder = RecordingSessionBuilder(graph.recorder)
    builder.start_recording(0.0)
    with pytest.raises(RecordingStateError):
        builder.on_note_off(0.5)


def test_note_on_while_idle_is_a_contract_violation(graph) -> None:
    builder = RecordingSessionBuilder(graph.recorder)
    with pytest.raises(RecordingStateError):
        builder.on_note_on("A4", 0.1)


def test_registry_delete_releases_audio(graph) -> None:
    builder = RecordingSessionBuilder(graph.recorder)
    builder.start_recording(0.0)
    session = asyncio.run(builder.stop_recording(1.0))

    registry = SessionRegistry(release=graph.recorder.release)
    registry.add(session)
    assert registry.get(session.id) is session
    assert len(registry) == 1

    registry.delete(session.id)
    assert graph.recorder.released == ["clip"]
    assert len(registry) == 0
    with pytest.raises(SessionNotFound):
        registry.get(session.id)
    with pytest.raises(SessionNotFound):
        registry.delete(session.id)


def test_session_to_dict() -> None:
    session = Session(
        id="abc",
        created_at=1.0,
        notes=(NoteEvent("A4", 0.5, 0.25),),
        audio_handle=None,
        instrument_label="Guitar",
    )
    payload = session.to_dict()
    assert payload["noteCount"] == 1
    assert payload["notes"] == [{"note": "A4", "startTime": 0.5, "duration": 0.25}]
    assert "notes" not in session.to_dict(include_notes=False)
