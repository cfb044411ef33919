"""Access to the PortAudio bindings."""

from __future__ import annotations

from ..errors import DeviceUnavailableError


def sounddevice():
    """Import sounddevice, reporting a missing library or PortAudio as unavailable."""
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise DeviceUnavailableError(
            f"audio devices are unavailable ({e}); install sounddevice and PortAudio"
        ) from e
    return sd
