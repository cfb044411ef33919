"""Google Gemini implementation of the AI service."""

from __future__ import annotations

import base64
import logging

from ..errors import AIFormatError, AIRequestError
from ..models import (
    ArchivedReceipt,
    CardDetails,
    ChatMessage,
    GroundingSource,
    OptimizedList,
    PriceComparison,
    ReceiptData,
)
from . import AIService
from .schemas import (
    LOYALTY_CARD_SCHEMA,
    RECEIPT_SCHEMA,
    parse_loyalty_card,
    parse_price_comparison,
    parse_receipt,
)

logger = logging.getLogger(__name__)

_RECEIPT_PROMPT = (
    "Analysez ce ticket de caisse et extrayez le nom du magasin, la date, "
    "et une liste de tous les articles avec leurs prix. "
    "Fournissez le résultat au format JSON demandé."
)

_CARD_PROMPT = (
    "Analysez cette image d'une carte de fidélité. Extrayez le nom du magasin "
    "et le numéro complet de la carte. Fournissez le résultat au format JSON demandé."
)

_COMPARE_PROMPT = """\
Trouvez et comparez les prix pour l'article "{item}" dans plusieurs grands \
supermarchés français comme Carrefour, E.Leclerc, Auchan, Intermarché, et Lidl. \
Cherchez les prix actuels et les promotions actives.

Retournez UNIQUEMENT le JSON suivant, sans aucun texte ou formatage supplémentaire :
{{"comparison": [
  {{"store": "magasin", "productName": "nom du produit trouvé", "price": 0.0,
    "promotion": "détails de la promotion, ou 'N/A' si aucune"}}
]}}
"""

_OPTIMIZE_PROMPT = """\
Vous êtes un assistant d'achat expert nommé OptiPanier.
Votre objectif est de m'aider à économiser sur mes courses.
Voici ma liste de courses :
{items}

{history}

Veuillez créer un plan d'achat optimisé. Suggérez quels articles acheter dans \
quelles grandes surfaces (ex: Carrefour, Leader Price, Market, etc.) pour \
minimiser le coût total.
Prenez en compte TROIS facteurs :
1. L'historique de prix personnel de l'utilisateur (si fourni) pour voir où il \
obtient habituellement de bons prix.
2. Les promotions en temps réel et les prix actuels via la recherche Google.
3. Un itinéraire logique multi-magasins.

Si la localisation de l'utilisateur est fournie, suggérez des magasins à proximité.
Formatez votre réponse en Markdown clair et lisible, en incluant des tableaux si pertinent.
"""

_HISTORY_RECEIPTS = 20
_HISTORY_ITEMS = 5


def build_history_summary(history: list[ArchivedReceipt]) -> str:
    """Summarize recent receipts for the shopping list optimizer prompt."""
    if not history:
        return ""
    lines = []
    for r in history[:_HISTORY_RECEIPTS]:
        items = ", ".join(
            f"{i.name} ({i.price:.2f}€)" for i in r.items[:_HISTORY_ITEMS]
        )
        lines.append(f"Le {r.date} chez {r.store}, les articles incluaient : {items}.")
    return (
        "Pour information, voici un résumé de l'historique d'achat récent de "
        "l'utilisateur. Utilisez-le pour guider vos recommandations sur les "
        "magasins où les articles sont historiquement les moins chers pour cet "
        "utilisateur :\n" + "\n".join(lines) + "\n"
    )


class GeminiChat:
    """Multi-turn chat with Google Search grounding."""

    def __init__(self, chat) -> None:
        self._chat = chat

    async def send(self, text: str) -> ChatMessage:
        try:
            response = await self._chat.send_message(text)
        except Exception as e:
            raise AIRequestError(f"chat request failed: {e}") from e
        return ChatMessage(
            role="model",
            text=response.text or "",
            sources=_grounding_sources(response, "web"),
        )


class GeminiService(AIService):
    """Receipt/card extraction, price lookup, chat and speech via Gemini."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "gemini-2.5-flash",
        optimizer_model: str = "gemini-2.5-pro",
        tts_model: str = "gemini-2.5-flash-preview-tts",
        tts_voice: str = "Kore",
        live_model: str = "gemini-2.5-flash-native-audio-preview-09-2025",
        client=None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._optimizer_model = optimizer_model
        self._tts_model = tts_model
        self._tts_voice = tts_voice
        self._live_model = live_model
        self._client = client

    def _get_client(self):
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise AIRequestError(
                "La clé API Gemini n'est pas configurée. "
                "Vérifiez le fichier de configuration ou la variable GEMINI_API_KEY."
            )

        try:
            from google import genai
        except ImportError:
            raise ImportError(
                "google-genai SDK is required: pip install google-genai"
            ) from None

        self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def _generate(self, model: str, contents, config: dict | None = None):
        client = self._get_client()
        try:
            return await client.aio.models.generate_content(
                model=model, contents=contents, config=config
            )
        except Exception as e:
            logger.error("Échec de la requête Gemini (%s) : %s", model, e)
            raise AIRequestError(f"Gemini request failed: {e}") from e

    @staticmethod
    def _image_contents(image: bytes, mime_type: str, prompt: str) -> list[dict]:
        return [
            {
                "role": "user",
                "parts": [
                    {"inline_data": {"mime_type": mime_type, "data": image}},
                    {"text": prompt},
                ],
            }
        ]

    async def analyze_receipt(self, image: bytes, mime_type: str) -> ReceiptData:
        response = await self._generate(
            self._model,
            self._image_contents(image, mime_type, _RECEIPT_PROMPT),
            {"response_mime_type": "application/json", "response_schema": RECEIPT_SCHEMA},
        )
        return parse_receipt(response.text)

    async def analyze_loyalty_card(self, image: bytes, mime_type: str) -> CardDetails:
        response = await self._generate(
            self._model,
            self._image_contents(image, mime_type, _CARD_PROMPT),
            {
                "response_mime_type": "application/json",
                "response_schema": LOYALTY_CARD_SCHEMA,
            },
        )
        return parse_loyalty_card(response.text)

    async def compare_item_prices(self, item_name: str) -> list[PriceComparison]:
        # Search grounding cannot be combined with JSON mode
        response = await self._generate(
            self._model,
            _COMPARE_PROMPT.format(item=item_name),
            {"tools": [{"google_search": {}}]},
        )
        try:
            return parse_price_comparison(response.text)
        except AIFormatError:
            logger.error("Réponse de comparaison illisible : %r", response.text)
            raise

    async def optimize_shopping_list(
        self,
        items: list[str],
        location: tuple[float, float] | None,
        history: list[ArchivedReceipt],
    ) -> OptimizedList:
        prompt = _OPTIMIZE_PROMPT.format(
            items="\n".join(f"- {item}" for item in items),
            history=build_history_summary(history),
        )
        config: dict = {
            "tools": [{"google_maps": {}}],
            "thinking_config": {"thinking_budget": 32768},
        }
        if location is not None:
            latitude, longitude = location
            config["tool_config"] = {
                "retrieval_config": {
                    "lat_lng": {"latitude": latitude, "longitude": longitude}
                }
            }
        response = await self._generate(self._optimizer_model, prompt, config)
        return OptimizedList(
            text=response.text or "",
            sources=_grounding_sources(response, "maps", fallback="web"),
        )

    async def synthesize_speech(self, text: str) -> bytes:
        response = await self._generate(
            self._tts_model,
            [{"role": "user", "parts": [{"text": text}]}],
            {
                "response_modalities": ["AUDIO"],
                "speech_config": {
                    "voice_config": {
                        "prebuilt_voice_config": {"voice_name": self._tts_voice}
                    }
                },
            },
        )
        try:
            data = response.candidates[0].content.parts[0].inline_data.data
        except (AttributeError, IndexError, TypeError):
            data = None
        if not data:
            raise AIFormatError("no audio data received from the AI service")
        if isinstance(data, str):
            data = base64.b64decode(data)
        return data

    def start_chat(self, system_instruction: str) -> GeminiChat:
        client = self._get_client()
        chat = client.aio.chats.create(
            model=self._model,
            config={
                "tools": [{"google_search": {}}],
                "system_instruction": system_instruction,
            },
        )
        return GeminiChat(chat)

    def live_connect(self, system_instruction: str):
        client = self._get_client()
        return client.aio.live.connect(
            model=self._live_model,
            config={
                "response_modalities": ["AUDIO"],
                "input_audio_transcription": {},
                "output_audio_transcription": {},
                "system_instruction": system_instruction,
            },
        )


def _grounding_sources(
    response, kind: str, fallback: str | None = None
) -> list[GroundingSource]:
    """Collect citation chunks of the given kind from the first candidate."""
    try:
        chunks = response.candidates[0].grounding_metadata.grounding_chunks or []
    except (AttributeError, IndexError, TypeError):
        return []

    sources: list[GroundingSource] = []
    for chunk in chunks:
        ref = getattr(chunk, kind, None)
        if ref is None and fallback:
            ref = getattr(chunk, fallback, None)
        uri = getattr(ref, "uri", None)
        if ref is None or not uri:
            continue
        sources.append(GroundingSource(uri=uri, title=getattr(ref, "title", None) or uri))
    return sources
