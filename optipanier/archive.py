"""Receipt and loyalty card archive, plus budget aggregates over receipts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable

from .db import RecordStore
from .models import ArchivedReceipt, LoyaltyCard

RECEIPTS = "receipts"
LOYALTY_CARDS = "loyaltyCards"


@dataclass
class ItemFrequency:
    name: str
    count: int


@dataclass
class BudgetSummary:
    total_spent: float = 0.0
    top_items: list[ItemFrequency] = field(default_factory=list)


class Archive:
    """Typed access to the receipt and loyalty card collections."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def add_receipt(self, receipt: ArchivedReceipt) -> None:
        await self._store.add(RECEIPTS, receipt.to_record())

    async def list_receipts(self) -> list[ArchivedReceipt]:
        """Return receipts in storage order."""
        records = await self._store.get_all(RECEIPTS)
        return [ArchivedReceipt.from_record(r) for r in records]

    async def list_receipts_by_recency(self) -> list[ArchivedReceipt]:
        """Return receipts newest first; unparsable dates come last."""
        return sort_by_recency(await self.list_receipts())

    async def get_receipt(self, receipt_id: str) -> ArchivedReceipt | None:
        for receipt in await self.list_receipts():
            if receipt.id == receipt_id:
                return receipt
        return None

    async def delete_receipt(self, receipt_id: str) -> None:
        await self._store.delete(RECEIPTS, receipt_id)

    async def add_loyalty_card(self, card: LoyaltyCard) -> None:
        await self._store.add(LOYALTY_CARDS, card.to_record())

    async def list_loyalty_cards(self) -> list[LoyaltyCard]:
        records = await self._store.get_all(LOYALTY_CARDS)
        return [LoyaltyCard.from_record(r) for r in records]

    async def delete_loyalty_card(self, card_id: str) -> None:
        await self._store.delete(LOYALTY_CARDS, card_id)

    async def budget_summary(self, top_n: int = 5) -> BudgetSummary:
        receipts = await self.list_receipts()
        return BudgetSummary(
            total_spent=total_spend(receipts),
            top_items=top_items_by_frequency(receipts, top_n),
        )


def receipt_sort_key(receipt: ArchivedReceipt) -> datetime:
    """Parse a receipt date for ordering.

    Accepts ISO dates and datetimes. Anything else maps to
    ``datetime.min`` so it sorts as the earliest purchase.
    """
    raw = (receipt.date or "").strip()
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(raw[:10]), datetime.min.time())
        except ValueError:
            return datetime.min
    # Compare aware values by instant, as naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def sort_by_recency(receipts: Iterable[ArchivedReceipt]) -> list[ArchivedReceipt]:
    return sorted(receipts, key=receipt_sort_key, reverse=True)


def total_spend(receipts: Iterable[ArchivedReceipt]) -> float:
    """Sum the receipt totals; a receipt without a total counts as zero."""
    return sum((r.total or 0 for r in receipts), 0)


def top_items_by_frequency(
    receipts: Iterable[ArchivedReceipt], n: int = 5
) -> list[ItemFrequency]:
    """Rank item names by how many line items carry them.

    Names are compared trimmed and case-insensitively. Ties keep the order
    in which names were first seen. Returned names have their first
    character upper-cased.
    """
    counts: dict[str, int] = {}
    for receipt in receipts:
        for item in receipt.items:
            key = item.name.lower().strip()
            counts[key] = counts.get(key, 0) + 1

    # sorted() is stable and dicts keep insertion order
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [
        ItemFrequency(name=name[:1].upper() + name[1:], count=count)
        for name, count in ranked[: max(n, 0)]
    ]
