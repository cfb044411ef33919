"""Output context that plays PCM buffers at scheduled start times."""

from __future__ import annotations

import logging
import threading

import numpy as np

from ..errors import DeviceUnavailableError
from .devices import sounddevice

logger = logging.getLogger(__name__)


class PlaybackContext:
    """Mono float32 output stream with a sample-accurate clock.

    ``current_time`` is the number of seconds of audio rendered since the
    stream opened. Buffers passed to ``play_at`` start exactly at the
    frame corresponding to their start time, so buffers scheduled
    back-to-back play without gaps or overlaps.
    """

    def __init__(self, sample_rate: int = 24000, device=None) -> None:
        self.sample_rate = sample_rate
        self._device = device
        self._stream = None
        self._lock = threading.Lock()
        self._frames = 0
        self._queue: list[tuple[int, np.ndarray]] = []

    @property
    def current_time(self) -> float:
        return self._frames / self.sample_rate

    def open(self) -> None:
        sd = sounddevice()
        try:
            self._stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                device=self._device,
                callback=self._callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._stream = None
            raise DeviceUnavailableError(f"audio output unavailable: {e}") from e

    def play_at(self, samples: np.ndarray, start: float) -> None:
        start_frame = round(start * self.sample_rate)
        with self._lock:
            self._queue.append((start_frame, np.asarray(samples, dtype=np.float32)))

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def render(self, frames: int) -> np.ndarray:
        """Mix the next ``frames`` samples and advance the clock."""
        out = np.zeros(frames, dtype=np.float32)
        with self._lock:
            block_start = self._frames
            block_end = block_start + frames
            remaining: list[tuple[int, np.ndarray]] = []
            for start_frame, samples in self._queue:
                end_frame = start_frame + len(samples)
                if end_frame <= block_start:
                    continue
                if start_frame >= block_end:
                    remaining.append((start_frame, samples))
                    continue
                lo = max(start_frame, block_start)
                hi = min(end_frame, block_end)
                out[lo - block_start:hi - block_start] += samples[lo - start_frame:hi - start_frame]
                if end_frame > block_end:
                    remaining.append((start_frame, samples))
            self._queue = remaining
            self._frames = block_end
        return out

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug("Lecture audio : %s", status)
        outdata[:, 0] = self.render(frames)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        with self._lock:
            self._queue = []
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
