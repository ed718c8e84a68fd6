# Overview: Service-layer dashboard statistics over catalog, counterparties and sales.

from __future__ import annotations

from datetime import date
from typing import Optional

from pharmapos.time_utils import today as utc_today
from .catalog_service import CatalogCache, CounterpartyDirectory, days_until_expiry
from .document_store import DocumentStore
from .pricing import ZERO, format_money
from .sales_service import list_sales


NEAR_EXPIRY_DAYS = 10


def stock_health(catalog: CatalogCache, on: Optional[date] = None, low_stock_threshold: int = 10) -> dict:
    """
    Stock counters for the dashboard:
    - in_stock: quantity > 0
    - finished: quantity == 0
    - expired: expiry date already passed
    - near_expiry: 0..10 days left
    - low_stock: 0 < quantity < threshold
    """
    on = on or utc_today()
    counts = {"inStock": 0, "finished": 0, "expired": 0, "nearExpiry": 0, "lowStock": 0}
    for item in catalog.items():
        if item.quantity > 0:
            counts["inStock"] += 1
        else:
            counts["finished"] += 1

        remaining = days_until_expiry(item, on)
        if remaining is not None:
            if remaining < 0:
                counts["expired"] += 1
            elif remaining <= NEAR_EXPIRY_DAYS:
                counts["nearExpiry"] += 1

        if 0 < item.quantity < low_stock_threshold:
            counts["lowStock"] += 1
    return counts


def dashboard_stats(store: DocumentStore, on: Optional[date] = None, low_stock_threshold: int = 10) -> dict:
    catalog = CatalogCache(store).load()
    directory = CounterpartyDirectory(store).load()
    sales = list_sales(store)

    stats = stock_health(catalog, on=on, low_stock_threshold=low_stock_threshold)
    stats["pharmacies"] = directory.count()
    stats["salesCount"] = len(sales)
    stats["revenue"] = format_money(sum((s.grand_total for s in sales), ZERO))
    stats["outstanding"] = format_money(sum((s.payment.amount_left for s in sales), ZERO))
    return stats
