"""PCM16 conversion between float sample frames and wire bytes."""

from __future__ import annotations

import base64

import numpy as np

_SCALE = 32768


def encode_frame(samples) -> bytes:
    """Convert float samples in [-1, 1] to little-endian signed 16-bit PCM.

    Samples are scaled by 32768 and truncated toward zero. Values outside
    the 16-bit range wrap rather than clamp, so 1.0 becomes -32768.
    """
    scaled = np.asarray(samples, dtype=np.float32).reshape(-1) * _SCALE
    return scaled.astype(np.int32).astype("<i2").tobytes()


def decode_chunk(data: bytes) -> np.ndarray:
    """Convert mono little-endian PCM16 bytes to float32 samples."""
    if len(data) % 2:
        data = data[:-1]
    return np.frombuffer(data, dtype="<i2").astype(np.float32) / _SCALE


def duration(samples: np.ndarray, sample_rate: int) -> float:
    return len(samples) / sample_rate


def from_base64(text: str) -> bytes:
    """Decode audio that arrived as base64 text."""
    return base64.b64decode(text)
