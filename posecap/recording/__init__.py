"""Recording session and capture sinks."""

from posecap.recording.session import RecordingSession, SessionBusyError
from posecap.recording.sink import CaptureSink, CaptureSinkError, VideoFileSink

__all__ = [
    "RecordingSession",
    "SessionBusyError",
    "CaptureSink",
    "CaptureSinkError",
    "VideoFileSink",
]
