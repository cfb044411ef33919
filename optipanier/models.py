"""Data models for receipts, loyalty cards, price alerts and chat."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


def new_record_id() -> str:
    """Return a record id derived from the current time in milliseconds."""
    return str(time.time_ns() // 1_000_000)


@dataclass
class ReceiptItem:
    """A single line item on a receipt."""

    name: str
    price: float


@dataclass
class ReceiptData:
    """Structured receipt contents as extracted by the AI service."""

    store: str
    date: str  # ISO-like, not validated
    items: list[ReceiptItem] = field(default_factory=list)
    total: float | None = None


@dataclass
class ArchivedReceipt(ReceiptData):
    """A receipt confirmed by the user and kept in the archive."""

    id: str = ""
    image_base64: str = ""

    @classmethod
    def from_data(
        cls, data: ReceiptData, image_base64: str, record_id: str | None = None
    ) -> ArchivedReceipt:
        return cls(
            store=data.store,
            date=data.date,
            items=list(data.items),
            total=data.total,
            id=record_id or new_record_id(),
            image_base64=image_base64,
        )

    def to_record(self) -> dict:
        record: dict = {
            "id": self.id,
            "store": self.store,
            "date": self.date,
            "items": [{"name": i.name, "price": i.price} for i in self.items],
            "imageBase64": self.image_base64,
        }
        if self.total is not None:
            record["total"] = self.total
        return record

    @classmethod
    def from_record(cls, record: dict) -> ArchivedReceipt:
        return cls(
            store=record.get("store", ""),
            date=record.get("date", ""),
            items=[
                ReceiptItem(name=i["name"], price=i["price"])
                for i in record.get("items", [])
            ],
            total=record.get("total"),
            id=record["id"],
            image_base64=record.get("imageBase64", ""),
        )


@dataclass
class LoyaltyCard:
    id: str
    store: str
    number: str  # may contain non-digits

    def to_record(self) -> dict:
        return {"id": self.id, "store": self.store, "number": self.number}

    @classmethod
    def from_record(cls, record: dict) -> LoyaltyCard:
        return cls(
            id=record["id"],
            store=record.get("store", ""),
            number=str(record.get("number", "")),
        )


@dataclass
class CardDetails:
    """Loyalty card fields read from a photo, before the user saves them."""

    store: str
    number: str


@dataclass
class PriceComparison:
    store: str
    product_name: str
    price: float
    promotion: str | None = None

    def has_promotion(self) -> bool:
        return bool(self.promotion) and self.promotion.strip().lower() != "n/a"

    def to_dict(self) -> dict:
        d: dict = {
            "store": self.store,
            "productName": self.product_name,
            "price": self.price,
        }
        if self.promotion is not None:
            d["promotion"] = self.promotion
        return d

    @classmethod
    def from_dict(cls, d: dict) -> PriceComparison:
        return cls(
            store=d["store"],
            product_name=d["productName"],
            price=d["price"],
            promotion=d.get("promotion"),
        )


@dataclass
class AlertItem:
    """A product the user tracks, with the best deal found by the last sweep."""

    id: str
    name: str
    deal: PriceComparison | None = None

    def to_dict(self) -> dict:
        d: dict = {"id": self.id, "name": self.name}
        if self.deal is not None:
            d["deal"] = self.deal.to_dict()
        return d

    @classmethod
    def from_dict(cls, d: dict) -> AlertItem:
        deal = d.get("deal")
        return cls(
            id=d["id"],
            name=d["name"],
            deal=PriceComparison.from_dict(deal) if deal else None,
        )


@dataclass
class GroundingSource:
    uri: str
    title: str


@dataclass
class ChatMessage:
    role: str  # "user" or "model"
    text: str
    sources: list[GroundingSource] = field(default_factory=list)


@dataclass
class OptimizedList:
    """Markdown shopping plan with the map/web citations attached to it."""

    text: str
    sources: list[GroundingSource] = field(default_factory=list)
