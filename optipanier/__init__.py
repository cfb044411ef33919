"""OptiPanier: receipt archive and Gemini-powered shopping assistant."""

from .archive import (
    Archive,
    BudgetSummary,
    ItemFrequency,
    top_items_by_frequency,
    total_spend,
)
from .config import (
    GeminiConfig,
    LiveConfig,
    OptiPanierConfig,
    StorageConfig,
    load_config,
)
from .db import RecordStore
from .errors import (
    AIFormatError,
    AIRequestError,
    DeviceUnavailableError,
    DuplicateKeyError,
    OptiPanierError,
    SessionError,
    StorageError,
)

__all__ = [
    "Archive",
    "BudgetSummary",
    "ItemFrequency",
    "RecordStore",
    "top_items_by_frequency",
    "total_spend",
    "OptiPanierConfig",
    "StorageConfig",
    "GeminiConfig",
    "LiveConfig",
    "load_config",
    "OptiPanierError",
    "StorageError",
    "DuplicateKeyError",
    "AIRequestError",
    "AIFormatError",
    "DeviceUnavailableError",
    "SessionError",
]
