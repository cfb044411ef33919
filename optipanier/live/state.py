"""Live conversation state and the reducer applied to each server message."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

import numpy as np

from .pcm import decode_chunk, duration, from_base64

USER_PREFIX = "Vous : "
ASSISTANT_PREFIX = "Assistant : "


class LiveStatus(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class ServerEvent:
    """The parts of a server message the pipeline reacts to."""

    input_text: str = ""
    output_text: str = ""
    turn_complete: bool = False
    audio: bytes | None = None


@dataclass(frozen=True)
class ScheduledBuffer:
    samples: np.ndarray
    start: float
    duration: float


@dataclass(frozen=True)
class LiveState:
    pending_input: str = ""
    pending_output: str = ""
    transcript: tuple[str, ...] = ()
    next_start_time: float = 0.0


def schedule_start(watermark: float, now: float) -> float:
    """Start time for the next buffer: never before ``now``, never overlapping."""
    return max(watermark, now)


def reduce_event(
    state: LiveState, event: ServerEvent, now: float, sample_rate: int = 24000
) -> tuple[LiveState, list[ScheduledBuffer]]:
    """Apply one server event.

    Partial transcripts accumulate until a turn completes, at which point
    both lines are appended to the transcript together and the pending
    text is cleared. Audio is scheduled back-to-back on the output clock
    starting no earlier than ``now``.
    """
    pending_input = state.pending_input + event.input_text
    pending_output = state.pending_output + event.output_text
    transcript = state.transcript

    if event.turn_complete:
        transcript = transcript + (
            USER_PREFIX + pending_input,
            ASSISTANT_PREFIX + pending_output,
        )
        pending_input = ""
        pending_output = ""

    scheduled: list[ScheduledBuffer] = []
    next_start_time = state.next_start_time
    if event.audio:
        samples = decode_chunk(event.audio)
        start = schedule_start(next_start_time, now)
        length = duration(samples, sample_rate)
        scheduled.append(ScheduledBuffer(samples=samples, start=start, duration=length))
        next_start_time = start + length

    new_state = replace(
        state,
        pending_input=pending_input,
        pending_output=pending_output,
        transcript=transcript,
        next_start_time=next_start_time,
    )
    return new_state, scheduled


def event_from_message(message) -> ServerEvent:
    """Extract transcripts, turn completion and inline audio from a live message."""
    content = getattr(message, "server_content", None)
    if content is None:
        return ServerEvent()

    input_tr = getattr(content, "input_transcription", None)
    output_tr = getattr(content, "output_transcription", None)

    audio = None
    model_turn = getattr(content, "model_turn", None)
    parts = getattr(model_turn, "parts", None) or []
    if parts:
        inline = getattr(parts[0], "inline_data", None)
        data = getattr(inline, "data", None)
        if isinstance(data, str):
            data = from_base64(data)
        audio = data or None

    return ServerEvent(
        input_text=(getattr(input_tr, "text", None) or "") if input_tr else "",
        output_text=(getattr(output_tr, "text", None) or "") if output_tr else "",
        turn_complete=bool(getattr(content, "turn_complete", False)),
        audio=audio,
    )
