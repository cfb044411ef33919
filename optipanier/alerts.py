"""Price alerts: tracked products refreshed with the best current deal."""

from __future__ import annotations

import logging

from .ai import AIService
from .errors import OptiPanierError
from .models import AlertItem, PriceComparison, new_record_id
from .settings import Settings

logger = logging.getLogger(__name__)

ALERTS_KEY = "optiPanierAlertItems"


def best_deal(comparisons: list[PriceComparison]) -> PriceComparison | None:
    """Return the lowest-priced offer; the first one wins a tie."""
    best: PriceComparison | None = None
    for offer in comparisons:
        if best is None or offer.price < best.price:
            best = offer
    return best


class PriceAlerts:
    """Manages the tracked product list kept in the settings file."""

    def __init__(self, settings: Settings, service: AIService) -> None:
        self._settings = settings
        self._service = service

    def list(self) -> list[AlertItem]:
        items = []
        for raw in self._settings.get(ALERTS_KEY, []):
            try:
                items.append(AlertItem.from_dict(raw))
            except (KeyError, TypeError) as e:
                logger.error("Alerte ignorée (%s) : %r", e, raw)
        return items

    def _save(self, items: list[AlertItem]) -> None:
        self._settings.set(ALERTS_KEY, [i.to_dict() for i in items])

    def add(self, name: str) -> AlertItem | None:
        """Track a new product. Blank names are ignored."""
        name = name.strip()
        if not name:
            return None
        item = AlertItem(id=new_record_id(), name=name)
        self._save([item, *self.list()])
        return item

    def delete(self, item_id: str) -> None:
        self._save([i for i in self.list() if i.id != item_id])

    async def check_all(self) -> list[AlertItem]:
        """Refresh the best deal of every tracked product, one at a time.

        A product whose lookup fails keeps its previous deal.
        """
        items = self.list()
        for item in items:
            try:
                comparisons = await self._service.compare_item_prices(item.name)
            except OptiPanierError:
                logger.exception("Échec de la recherche de prix pour %s", item.name)
                continue
            item.deal = best_deal(comparisons)
        self._save(items)
        return items
