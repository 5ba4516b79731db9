from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from vox_studio.modes import Mode


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class InitMessage(_Model):
    type: Literal["init"]
    sample_rate: int = Field(alias="sampleRate", ge=8_000, le=192_000)
    sensitivity: float = Field(default=0.015, ge=0.0, le=1.0)
    gain_boost: float = Field(alias="gainBoost", default=2.5, gt=0.0, le=50.0)
    instrument: str = Field(default="Piano", max_length=64)
    mic_granted: bool = Field(alias="micGranted", default=True)


class SetModeMessage(_Model):
    type: Literal["set_mode"]
    mode: Mode


class SetCalibrationMessage(_Model):
    type: Literal["set_calibration"]
    sensitivity: float | None = Field(default=None, ge=0.0, le=1.0)
    gain_boost: float | None = Field(alias="gainBoost", default=None, gt=0.0, le=50.0)


class SetInstrumentMessage(_Model):
    type: Literal["set_instrument"]
    instrument: str = Field(min_length=1, max_length=64)


class PlaySessionMessage(_Model):
    type: Literal["play_session"]
    session_id: str = Field(alias="sessionId", min_length=1)


class StopPlaybackMessage(_Model):
    type: Literal["stop_playback"]


class PlaybackEndedMessage(_Model):
    type: Literal["playback_ended"]


class TransportPingMessage(_Model):
    type: Literal["transport_ping"]
    client_ts: float = Field(alias="clientTs")


class NoteEventModel(_Model):
    note: str
    start_time: float = Field(alias="startTime")
    duration: float


class SessionSummary(_Model):
    id: str
    created_at: float = Field(alias="createdAt")
    instrument: str
    note_count: int = Field(alias="noteCount")
    duration: float


class SessionDetail(SessionSummary):
    notes: list[NoteEventModel]
