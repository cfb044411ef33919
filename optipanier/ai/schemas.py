"""Response schemas and validated parsers for structured AI answers."""

from __future__ import annotations

import json

from ..errors import AIFormatError
from ..models import CardDetails, PriceComparison, ReceiptData, ReceiptItem

RECEIPT_SCHEMA: dict = {
    "type": "OBJECT",
    "properties": {
        "store": {"type": "STRING", "description": "Nom du supermarché ou magasin."},
        "date": {"type": "STRING", "description": "Date de l'achat au format AAAA-MM-JJ."},
        "items": {
            "type": "ARRAY",
            "description": "Liste des articles achetés.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING", "description": "Nom du produit."},
                    "price": {"type": "NUMBER", "description": "Prix du produit."},
                },
                "required": ["name", "price"],
            },
        },
        "total": {"type": "NUMBER", "description": "Le montant total du ticket de caisse."},
    },
    "required": ["store", "date", "items"],
}

LOYALTY_CARD_SCHEMA: dict = {
    "type": "OBJECT",
    "properties": {
        "store": {
            "type": "STRING",
            "description": "Le nom du magasin pour la carte de fidélité (ex: 'Carrefour', 'Lidl').",
        },
        "number": {
            "type": "STRING",
            "description": "Le numéro de la carte de fidélité ou du code-barres sous forme de chaîne.",
        },
    },
    "required": ["store", "number"],
}


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```)."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned.strip()


def _load(text: str | None):
    if not text:
        raise AIFormatError("empty response from the AI service")
    try:
        return json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise AIFormatError(f"response is not valid JSON: {e}") from e


def _number(value, what: str) -> float:
    # bool is an int subclass but never a price
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise AIFormatError(f"{what} must be a number, got {value!r}")
    return value


def _string(value, what: str) -> str:
    if not isinstance(value, str):
        raise AIFormatError(f"{what} must be a string, got {value!r}")
    return value


def parse_receipt(text: str | None) -> ReceiptData:
    """Parse a receipt extraction answer."""
    data = _load(text)
    if not isinstance(data, dict):
        raise AIFormatError("receipt must be a JSON object")
    for key in ("store", "date", "items"):
        if key not in data:
            raise AIFormatError(f"receipt is missing {key!r}")
    if not isinstance(data["items"], list):
        raise AIFormatError("receipt items must be a list")

    items: list[ReceiptItem] = []
    for raw in data["items"]:
        if not isinstance(raw, dict) or "name" not in raw or "price" not in raw:
            raise AIFormatError(f"invalid receipt item: {raw!r}")
        items.append(
            ReceiptItem(
                name=_string(raw["name"], "item name"),
                price=_number(raw["price"], "item price"),
            )
        )

    total = data.get("total")
    return ReceiptData(
        store=_string(data["store"], "store"),
        date=_string(data["date"], "date"),
        items=items,
        total=None if total is None else _number(total, "total"),
    )


def parse_loyalty_card(text: str | None) -> CardDetails:
    """Parse a loyalty card extraction answer."""
    data = _load(text)
    if not isinstance(data, dict) or "store" not in data or "number" not in data:
        raise AIFormatError("loyalty card must have 'store' and 'number'")
    number = data["number"]
    # Card numbers occasionally come back as JSON numbers
    if isinstance(number, int) and not isinstance(number, bool):
        number = str(number)
    return CardDetails(
        store=_string(data["store"], "store"),
        number=_string(number, "number"),
    )


def parse_price_comparison(text: str | None) -> list[PriceComparison]:
    """Parse a price comparison answer: ``{"comparison": [...]}``."""
    data = _load(text)
    if not isinstance(data, dict) or not isinstance(data.get("comparison"), list):
        raise AIFormatError("price comparison must contain a 'comparison' list")

    results: list[PriceComparison] = []
    for raw in data["comparison"]:
        if not isinstance(raw, dict):
            raise AIFormatError(f"invalid comparison entry: {raw!r}")
        try:
            store, product, price = raw["store"], raw["productName"], raw["price"]
        except KeyError as e:
            raise AIFormatError(f"comparison entry is missing {e.args[0]!r}") from None
        promotion = raw.get("promotion")
        results.append(
            PriceComparison(
                store=_string(store, "store"),
                product_name=_string(product, "productName"),
                price=_number(price, "price"),
                promotion=None if promotion is None else _string(promotion, "promotion"),
            )
        )
    return results
