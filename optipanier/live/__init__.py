"""Realtime voice assistant: audio capture, streaming and gapless playback."""

from .capture import MicrophoneCapture
from .playback import PlaybackContext
from .session import LiveAssistant
from .state import (
    LiveState,
    LiveStatus,
    ScheduledBuffer,
    ServerEvent,
    event_from_message,
    reduce_event,
    schedule_start,
)

__all__ = [
    "LiveAssistant",
    "LiveState",
    "LiveStatus",
    "MicrophoneCapture",
    "PlaybackContext",
    "ScheduledBuffer",
    "ServerEvent",
    "event_from_message",
    "reduce_event",
    "schedule_start",
]
