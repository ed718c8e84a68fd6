# Overview: Service-layer cart (line-item ledger) for the active billing session.

"""
Cart / Line-Item Ledger

WHY: The order being built lives only in memory until checkout. Each line
is unique by item id and keeps a snapshot of name and price taken when the
line was first added. Stock is checked against the session's catalog cache
on add and on quantity edits; it is not re-validated against concurrent
changes made elsewhere.

RULES:
- add_line on a new item with stock 0 -> OutOfStock
- add_line pushing a line past stock -> StockLimitExceeded
- add_line on an item expiring in fewer than 10 days -> NearExpiry
- set_line_qty silently clamps into [1, stock]
- remove_line on a missing id is a no-op
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from pharmapos.schemas import CatalogItem
from pharmapos.validation import ValidationError, parse_int_or
from .catalog_service import CatalogCache, days_until_expiry, is_expiry_sellable
from .pricing import Totals, compute_totals, format_money, line_total


class CartError(ValidationError):
    """Raised when a cart operation violates a stock or expiry rule."""

    def __init__(self, message: str, item_id: str | None = None, title: str = "Cart Error"):
        super().__init__(message)
        self.item_id = item_id
        self.title = title


class UnknownItem(CartError):
    pass


class OutOfStock(CartError):
    pass


class StockLimitExceeded(CartError):
    pass


class NearExpiry(CartError):
    pass


@dataclass
class CartLine:
    item_id: str
    name: str
    unit_price: Decimal
    qty: int = 1

    @property
    def total(self) -> Decimal:
        return line_total(self.qty, self.unit_price)


class Cart:
    """Ordered set of cart lines, unique by item id."""

    def __init__(self, catalog: CatalogCache, today: Optional[date] = None):
        self.catalog = catalog
        self._today = today
        self._lines: dict[str, CartLine] = {}

    @property
    def today(self) -> Optional[date]:
        return self._today

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    def get(self, item_id: str) -> Optional[CartLine]:
        return self._lines.get(str(item_id))

    def stock_for(self, item_id: str) -> int:
        item = self.catalog.get(item_id)
        return item.quantity if item is not None else 0

    def add_line(self, item_id: str, requested_delta: int = 1) -> CartLine:
        item_id = str(item_id)
        delta = parse_int_or(requested_delta, 1)
        if delta < 1:
            raise ValidationError("Quantity to add must be at least 1")

        item = self.catalog.get(item_id)
        if item is None:
            raise UnknownItem(f"Medicine {item_id} not found", item_id=item_id, title="Not Found")

        self._check_expiry(item)

        stock = item.quantity
        line = self._lines.get(item_id)
        if line is not None:
            if line.qty + delta > stock:
                raise StockLimitExceeded(
                    f"Cannot add more {item.name}. Only {stock} in stock.",
                    item_id=item_id,
                    title="Stock Limit",
                )
            line.qty += delta
            return line

        if stock == 0:
            raise OutOfStock(f"{item.name} is out of stock.", item_id=item_id, title="Out of Stock")
        if delta > stock:
            raise StockLimitExceeded(
                f"Cannot add more {item.name}. Only {stock} in stock.",
                item_id=item_id,
                title="Stock Limit",
            )

        line = CartLine(item_id=item_id, name=item.name, unit_price=item.selling_price, qty=delta)
        self._lines[item_id] = line
        return line

    def set_line_qty(self, item_id: str, qty) -> Optional[CartLine]:
        """
        Set a line's quantity, clamped into [1, stock]. Unparsable input
        counts as 1. Returns None when the line does not exist.
        """
        line = self._lines.get(str(item_id))
        if line is None:
            return None
        value = max(1, parse_int_or(qty, 1))
        line.qty = min(value, self.stock_for(line.item_id))
        return line

    def remove_line(self, item_id: str) -> Optional[CartLine]:
        return self._lines.pop(str(item_id), None)

    def discard_sold(self, quantities: dict[str, int]) -> None:
        """Take sold units out of the cart; anything added since stays."""
        for item_id, sold in quantities.items():
            line = self._lines.get(str(item_id))
            if line is None:
                continue
            if line.qty > sold:
                line.qty -= sold
            else:
                del self._lines[line.item_id]

    def totals(self, discount_percent=0, vat_percent=0) -> Totals:
        return compute_totals(self.lines, discount_percent, vat_percent)

    def to_list(self) -> list[dict]:
        rows = []
        for line in self._lines.values():
            item = self.catalog.get(line.item_id)
            rows.append({
                "itemId": line.item_id,
                "name": line.name,
                "qty": line.qty,
                "unitPrice": format_money(line.unit_price),
                "total": format_money(line.total),
                "stock": item.quantity if item else 0,
                "expiry": item.expiry.isoformat() if item and item.expiry else "",
                "rack": item.rack if item else "",
                "category": item.category if item else "",
                "description": item.description if item else "",
            })
        return rows

    def _check_expiry(self, item: CatalogItem) -> None:
        if not is_expiry_sellable(item, self._today, self.catalog.expiry_min_days):
            remaining = days_until_expiry(item, self._today)
            detail = "no expiry date recorded" if remaining is None else f"{remaining} days remaining"
            raise NearExpiry(
                f"Cannot add expired or near-expiry medicine {item.name} "
                f"(less than {self.catalog.expiry_min_days} days remaining; {detail}).",
                item_id=item.id,
                title="Expired/Near Expiry",
            )
