"""Exception hierarchy shared by the store, the AI boundary and the live pipeline."""

from __future__ import annotations


class OptiPanierError(Exception):
    """Base class for all errors raised by optipanier."""


class StorageError(OptiPanierError):
    """The local store is unavailable or an operation on it failed."""


class DuplicateKeyError(StorageError):
    """A record with the same id already exists in the collection."""

    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"record {record_id!r} already exists in {collection!r}")
        self.collection = collection
        self.record_id = record_id


class AIRequestError(OptiPanierError):
    """The AI service could not be reached or rejected the request."""


class AIFormatError(OptiPanierError):
    """The AI service answered, but not in the expected shape."""


class DeviceUnavailableError(OptiPanierError):
    """A device capability (microphone, speaker) is missing or denied."""


class SessionError(OptiPanierError):
    """The realtime voice session failed."""
