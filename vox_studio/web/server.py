from __future__ import annotations

import io
import json
import logging
import time

import numpy as np
import soundfile as sf
import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import Response
from pydantic import ValidationError

from vox_studio import __version__
from vox_studio.capture import AudioClip, release_clip
from vox_studio.errors import PermissionDenied, PlaybackBusyError, SessionNotFound, WorkstationError
from vox_studio.recording import SessionRegistry
from vox_studio.web.schemas import (
    InitMessage,
    PlaybackEndedMessage,
    PlaySessionMessage,
    SessionDetail,
    SessionSummary,
    SetCalibrationMessage,
    SetInstrumentMessage,
    SetModeMessage,
    StopPlaybackMessage,
    TransportPingMessage,
)
from vox_studio.web.session import ConnectionManager, LiveSession

logger = logging.getLogger(__name__)

app = FastAPI(title="Vox Studio", version=__version__)
registry = SessionRegistry(release=release_clip)
connections = ConnectionManager(registry)


@app.get("/api/health")
async def health() -> dict[str, object]:
    return {
        "status": "ok",
        "version": __version__,
        "activeConnections": connections.active_count,
        "sessions": len(registry),
    }


@app.get("/api/sessions", response_model=list[SessionSummary])
async def list_sessions() -> list[SessionSummary]:
    return [SessionSummary.model_validate(s.to_dict(include_notes=False)) for s in registry.list()]


@app.get("/api/sessions/{session_id}", response_model=SessionDetail)
async def get_session(session_id: str) -> SessionDetail:
    try:
        session = registry.get(session_id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SessionDetail.model_validate(session.to_dict())


@app.get("/api/sessions/{session_id}/audio")
async def get_session_audio(session_id: str) -> Response:
    try:
        session = registry.get(session_id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    clip = session.audio_handle
    if not isinstance(clip, AudioClip) or clip.released:
        raise HTTPException(status_code=410, detail="Audio no longer available")
    return Response(content=_encode_wav(clip.samples, clip.sample_rate), media_type="audio/wav")


@app.delete("/api/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str) -> Response:
    try:
        registry.get(session_id)
        if connections.forget_session(session_id):
            logger.info("Stopped playback of session %s before deletion", session_id)
        registry.delete(session_id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.websocket("/ws/live")
async def live_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    session = connections.create()
    await websocket.send_json({"type": "status", "message": "Connected."})

    try:
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                break
            text = message.get("text")
            binary = message.get("bytes")

            if text is not None:
                for event in await _handle_text_message(session, text):
                    await websocket.send_json(event)
            elif binary is not None:
                for event in await session.process_audio_bytes(binary):
                    await websocket.send_json(event)
    except WebSocketDisconnect:
        pass
    finally:
        await session.close()
        connections.remove(session.session_id)


async def _handle_text_message(session: LiveSession, text: str) -> list[dict[str, object]]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return [{"type": "error", "code": "invalid_json", "message": "Invalid JSON payload"}]

    if not isinstance(payload, dict):
        return [{"type": "error", "code": "invalid_payload", "message": "Expected JSON object"}]

    msg_type = payload.get("type")
    try:
        if msg_type == "init":
            msg = InitMessage.model_validate(payload)
            return await session.init(
                sample_rate=msg.sample_rate,
                sensitivity=msg.sensitivity,
                gain_boost=msg.gain_boost,
                instrument=msg.instrument,
                mic_granted=msg.mic_granted,
            )

        if msg_type == "set_mode":
            msg = SetModeMessage.model_validate(payload)
            return await session.set_mode(msg.mode)

        if msg_type == "set_calibration":
            msg = SetCalibrationMessage.model_validate(payload)
            return session.set_calibration(sensitivity=msg.sensitivity, gain_boost=msg.gain_boost)

        if msg_type == "set_instrument":
            msg = SetInstrumentMessage.model_validate(payload)
            return session.set_instrument(msg.instrument)

        if msg_type == "play_session":
            msg = PlaySessionMessage.model_validate(payload)
            return session.play_session(msg.session_id)

        if msg_type == "stop_playback":
            StopPlaybackMessage.model_validate(payload)
            return session.stop_playback()

        if msg_type == "playback_ended":
            PlaybackEndedMessage.model_validate(payload)
            return await session.playback_ended()

        if msg_type == "transport_ping":
            msg = TransportPingMessage.model_validate(payload)
            return [
                {
                    "type": "transport_pong",
                    "clientTs": msg.client_ts,
                    "serverTs": time.time(),
                    "streamTime": session.clock.now(),
                }
            ]

    except ValidationError as exc:
        return [{"type": "error", "code": "invalid_message", "message": str(exc)}]
    except PermissionDenied as exc:
        return [{"type": "error", "code": "permission_denied", "message": str(exc)}]
    except SessionNotFound as exc:
        return [{"type": "error", "code": "session_not_found", "message": str(exc)}]
    except PlaybackBusyError as exc:
        return [{"type": "error", "code": "playback_busy", "message": str(exc)}]
    except WorkstationError as exc:
        logger.exception("Workstation error on %s", msg_type)
        return [{"type": "error", "code": "workstation_error", "message": str(exc)}]

    return [{"type": "error", "code": "unknown_message", "message": f"Unknown type: {msg_type}"}]


def _encode_wav(waveform: np.ndarray, sample_rate: int) -> bytes:
    buf = io.BytesIO()
    data = np.asarray(waveform, dtype=np.float32)
    sf.write(buf, data, sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "vox_studio.web.server:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
    )


if __name__ == "__main__":
    main()
