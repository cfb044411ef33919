"""Microphone capture delivering fixed-size float frames."""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from ..errors import DeviceUnavailableError
from .devices import sounddevice

logger = logging.getLogger(__name__)


class MicrophoneCapture:
    """Mono float32 input stream that hands each frame to a callback.

    The callback runs on the audio thread and must return quickly.
    """

    def __init__(
        self, sample_rate: int = 16000, frame_size: int = 4096, device=None
    ) -> None:
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self._device = device
        self._stream = None
        self._on_frame: Callable[[np.ndarray], None] | None = None

    def open(self) -> None:
        """Acquire the microphone without delivering frames yet."""
        sd = sounddevice()
        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self.frame_size,
                device=self._device,
                callback=self._callback,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceUnavailableError(f"microphone unavailable: {e}") from e

    def start(self, on_frame: Callable[[np.ndarray], None]) -> None:
        if self._stream is None:
            self.open()
        self._on_frame = on_frame
        sd = sounddevice()
        try:
            self._stream.start()
        except sd.PortAudioError as e:
            self._on_frame = None
            raise DeviceUnavailableError(f"microphone could not start: {e}") from e

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug("Capture micro : %s", status)
        handler = self._on_frame
        if handler is not None:
            handler(indata[:, 0].copy())

    def close(self) -> None:
        self._on_frame = None
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
