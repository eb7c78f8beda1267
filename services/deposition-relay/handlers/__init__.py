"""Connection handlers."""

from handlers.recording_handler import RecordingConnectionHandler

__all__ = ["RecordingConnectionHandler"]
