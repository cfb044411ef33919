"""Tests for price alerts and the settings file."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from optipanier.ai import AIService
from optipanier.alerts import ALERTS_KEY, PriceAlerts, best_deal
from optipanier.errors import AIFormatError, AIRequestError
from optipanier.models import AlertItem, PriceComparison
from optipanier.settings import Settings


def _offer(store: str, price: float, promotion: str | None = None) -> PriceComparison:
    return PriceComparison(store=store, product_name="Lait", price=price, promotion=promotion)


def _service(**lookups) -> MagicMock:
    service = MagicMock(spec=AIService)
    service.compare_item_prices = AsyncMock(side_effect=lambda name: lookups[name])
    return service


class TestSettings:
    def test_missing_file_returns_default(self, tmp_path):
        settings = Settings(tmp_path / "settings.json")
        assert settings.get("x", []) == []

    def test_set_and_get(self, tmp_path):
        path = tmp_path / "nested" / "settings.json"
        settings = Settings(path)
        settings.set("a", [1, 2])
        settings.set("b", "été")
        assert Settings(path).get("a") == [1, 2]
        assert json.loads(path.read_text(encoding="utf-8"))["b"] == "été"

    def test_corrupt_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{broken", encoding="utf-8")
        settings = Settings(path)
        assert settings.get("a", "default") == "default"
        settings.set("a", 1)
        assert settings.get("a") == 1


class TestBestDeal:
    def test_lowest_price(self):
        offers = [_offer("Carrefour", 1.20), _offer("Lidl", 0.99), _offer("Aldi", 1.05)]
        assert best_deal(offers).store == "Lidl"

    def test_tie_keeps_first(self):
        offers = [_offer("Carrefour", 0.99), _offer("Lidl", 0.99)]
        assert best_deal(offers).store == "Carrefour"

    def test_empty(self):
        assert best_deal([]) is None


class TestPromotion:
    @pytest.mark.parametrize(
        "promotion,expected",
        [(None, False), ("", False), ("N/A", False), ("n/a", False), ("2 achetés = 1 offert", True)],
    )
    def test_has_promotion(self, promotion, expected):
        assert _offer("Lidl", 1.0, promotion).has_promotion() is expected


class TestPriceAlerts:
    def test_add_newest_first(self, tmp_path):
        alerts = PriceAlerts(Settings(tmp_path / "s.json"), _service())
        first = alerts.add("lait")
        second = alerts.add("  café  ")
        assert [i.name for i in alerts.list()] == ["café", "lait"]
        assert first.id and second.id

    def test_blank_name_ignored(self, tmp_path):
        alerts = PriceAlerts(Settings(tmp_path / "s.json"), _service())
        assert alerts.add("   ") is None
        assert alerts.list() == []

    def test_delete(self, tmp_path):
        settings = Settings(tmp_path / "s.json")
        settings.set(ALERTS_KEY, [{"id": "1", "name": "lait"}, {"id": "2", "name": "pain"}])
        alerts = PriceAlerts(settings, _service())
        alerts.delete("1")
        assert [i.id for i in alerts.list()] == ["2"]

    def test_malformed_entry_skipped(self, tmp_path):
        settings = Settings(tmp_path / "s.json")
        settings.set(ALERTS_KEY, [{"name": "sans id"}, {"id": "2", "name": "pain"}])
        assert [i.name for i in PriceAlerts(settings, _service()).list()] == ["pain"]

    @pytest.mark.asyncio
    async def test_check_all_updates_deals(self, tmp_path):
        settings = Settings(tmp_path / "s.json")
        settings.set(ALERTS_KEY, [{"id": "1", "name": "lait"}, {"id": "2", "name": "pain"}])
        service = _service(
            lait=[_offer("Carrefour", 1.20), _offer("Lidl", 0.99)],
            pain=[],
        )
        alerts = PriceAlerts(settings, service)

        items = await alerts.check_all()

        assert items[0].deal.store == "Lidl"
        assert items[1].deal is None
        stored = settings.get(ALERTS_KEY)
        assert stored[0]["deal"]["price"] == 0.99
        assert "deal" not in stored[1]
        assert [c.args[0] for c in service.compare_item_prices.await_args_list] == ["lait", "pain"]

    @pytest.mark.asyncio
    async def test_failed_lookup_keeps_previous_deal(self, tmp_path):
        settings = Settings(tmp_path / "s.json")
        previous = AlertItem(id="1", name="lait", deal=_offer("Aldi", 1.05))
        settings.set(ALERTS_KEY, [previous.to_dict(), {"id": "2", "name": "pain"}])

        async def lookup(name):
            if name == "lait":
                raise AIRequestError("offline")
            return [_offer("Lidl", 0.80)]

        service = MagicMock(spec=AIService)
        service.compare_item_prices = AsyncMock(side_effect=lookup)

        items = await PriceAlerts(settings, service).check_all()

        assert items[0].deal == _offer("Aldi", 1.05)
        assert items[1].deal.price == 0.80

    @pytest.mark.asyncio
    async def test_format_error_does_not_stop_sweep(self, tmp_path):
        settings = Settings(tmp_path / "s.json")
        settings.set(ALERTS_KEY, [{"id": "1", "name": "lait"}, {"id": "2", "name": "pain"}])
        service = MagicMock(spec=AIService)
        service.compare_item_prices = AsyncMock(
            side_effect=[AIFormatError("bad"), [_offer("Lidl", 1.10)]]
        )

        items = await PriceAlerts(settings, service).check_all()

        assert items[0].deal is None
        assert items[1].deal.store == "Lidl"
