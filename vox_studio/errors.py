from __future__ import annotations


class WorkstationError(RuntimeError):
    pass


class PermissionDenied(WorkstationError):
    """The microphone could not be opened."""


class RecordingStateError(WorkstationError):
    """Note on/off calls arrived out of order."""


class PlaybackBusyError(WorkstationError):
    pass


class SessionNotFound(WorkstationError):
    pass
