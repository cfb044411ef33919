"""Text chat assistant grounded on web search and the user's receipts."""

from __future__ import annotations

import logging

from .ai import AIService
from .archive import Archive
from .errors import AIRequestError, StorageError
from .models import ArchivedReceipt, ChatMessage
from .settings import Settings

logger = logging.getLogger(__name__)

QUERY_HISTORY_KEY = "optiPanierQueryHistory"
_MAX_QUERIES = 5
_HISTORY_RECEIPTS = 10

_SYSTEM_INSTRUCTION = (
    "Vous êtes un assistant d'achat serviable nommé OptiPanier. Répondez aux "
    "questions des utilisateurs sur les produits, les promotions et les magasins. "
    "Gardez vos réponses concises, utiles et bien formatées en utilisant Markdown "
    "(tableaux, listes, texte en gras). Lorsque vous fournissez des informations, "
    "essayez toujours de les présenter de la manière la plus claire possible, en "
    "utilisant un tableau s'il s'agit de comparaisons."
)

GREETING = "Bonjour ! Comment puis-je vous aider à trouver les meilleures offres aujourd'hui ?"
APOLOGY = "Désolé, j'ai rencontré une erreur. Veuillez réessayer."


def build_system_instruction(receipts: list[ArchivedReceipt]) -> str:
    if not receipts:
        return _SYSTEM_INSTRUCTION
    lines = []
    for r in receipts[:_HISTORY_RECEIPTS]:
        total = f"{r.total:.2f}" if r.total is not None else "inconnu"
        lines.append(f"- Un ticket de {r.store} le {r.date} d'un total de {total} €.")
    return (
        _SYSTEM_INSTRUCTION
        + "\n\nVoici un résumé de l'historique d'achat récent de l'utilisateur :\n"
        + "\n".join(lines)
        + "\nUtilisez ces informations UNIQUEMENT si l'utilisateur vous interroge "
        "sur ses achats passés ou ses habitudes de dépense."
    )


def remember_query(history: list[str], query: str) -> list[str]:
    """Put a query first in the recent list, dropping case-insensitive repeats."""
    query = query.strip()
    rest = [q for q in history if q.lower() != query.lower()]
    return [query, *rest][:_MAX_QUERIES]


class ChatAssistant:
    def __init__(self, service: AIService, archive: Archive, settings: Settings) -> None:
        self._service = service
        self._archive = archive
        self._settings = settings
        self._chat = None
        self.messages: list[ChatMessage] = []

    @property
    def recent_queries(self) -> list[str]:
        return list(self._settings.get(QUERY_HISTORY_KEY, []))

    async def open(self) -> ChatMessage:
        """Start the conversation and return the greeting."""
        try:
            receipts = await self._archive.list_receipts_by_recency()
        except StorageError:
            logger.exception("Historique d'achat indisponible pour l'assistant")
            receipts = []

        self._chat = self._service.start_chat(build_system_instruction(receipts))
        greeting = ChatMessage(role="model", text=GREETING)
        self.messages = [greeting]
        return greeting

    async def send(self, text: str) -> ChatMessage | None:
        """Send a user message; blank input is ignored."""
        if not text.strip():
            return None
        if self._chat is None:
            await self.open()

        self._settings.set(
            QUERY_HISTORY_KEY, remember_query(self.recent_queries, text)
        )
        self.messages.append(ChatMessage(role="user", text=text))

        try:
            reply = await self._chat.send(text)
        except AIRequestError:
            logger.exception("Échec de la requête de chat")
            reply = ChatMessage(role="model", text=APOLOGY)
        self.messages.append(reply)
        return reply
