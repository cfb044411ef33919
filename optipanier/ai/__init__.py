"""AI service base class and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import OptiPanierConfig
    from ..models import (
        ArchivedReceipt,
        CardDetails,
        OptimizedList,
        PriceComparison,
        ReceiptData,
    )


class AIService(ABC):
    """Abstract boundary to the generative AI service.

    Implementations raise AIRequestError when the service cannot be
    reached and AIFormatError when a structured answer does not parse.
    """

    @abstractmethod
    async def analyze_receipt(self, image: bytes, mime_type: str) -> ReceiptData:
        ...

    @abstractmethod
    async def analyze_loyalty_card(self, image: bytes, mime_type: str) -> CardDetails:
        ...

    @abstractmethod
    async def compare_item_prices(self, item_name: str) -> list[PriceComparison]:
        ...

    @abstractmethod
    async def optimize_shopping_list(
        self,
        items: list[str],
        location: tuple[float, float] | None,
        history: list[ArchivedReceipt],
    ) -> OptimizedList:
        ...

    @abstractmethod
    async def synthesize_speech(self, text: str) -> bytes:
        """Return raw mono 24 kHz PCM16 audio."""
        ...

    @abstractmethod
    def start_chat(self, system_instruction: str):
        """Return a chat handle exposing ``await send(text) -> ChatMessage``."""
        ...

    @abstractmethod
    def live_connect(self, system_instruction: str):
        """Return an async context manager yielding a realtime session."""
        ...


def create_service(config: OptiPanierConfig) -> AIService:
    """Create the AI service from configuration."""
    from .gemini import GeminiService

    return GeminiService(
        api_key=config.gemini.api_key,
        model=config.gemini.model,
        optimizer_model=config.gemini.optimizer_model,
        tts_model=config.gemini.tts_model,
        tts_voice=config.gemini.tts_voice,
        live_model=config.gemini.live_model,
    )
