"""Memoized enrichment lookups (product names, invoice details).

Marketplace products and purchases do not change once created, so successful
lookups are cached for the lifetime of the process. Failures are never cached
so the next poll that needs the value retries it.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from core.models import InvoiceDetail

LOGGER = logging.getLogger(__name__)

ProductNameFetcher = Callable[[int], Awaitable[str]]
InvoiceDetailFetcher = Callable[[int], Awaitable[InvoiceDetail]]


def fallback_product_name(product_id: object) -> str:
    return f"Product {product_id}"


class EnrichmentCache:
    """Per-monitor cache keyed by product id and invoice id."""

    def __init__(self) -> None:
        self._product_names: dict[int, str] = {}
        self._invoice_details: dict[int, InvoiceDetail] = {}

    @property
    def product_count(self) -> int:
        return len(self._product_names)

    @property
    def invoice_count(self) -> int:
        return len(self._invoice_details)

    def remember_product_name(self, product_id: int, name: Optional[str]) -> None:
        """Prime the cache from a payload that already carries the name."""

        if name and product_id not in self._product_names:
            self._product_names[product_id] = name

    async def get_or_fetch_product_name(self, product_id: int, fetcher: ProductNameFetcher) -> str:
        cached = self._product_names.get(product_id)
        if cached is not None:
            return cached

        try:
            name = await fetcher(product_id)
        except Exception as exc:
            LOGGER.warning("Could not fetch product name for %s: %s", product_id, exc)
            return fallback_product_name(product_id)

        self._product_names[product_id] = name
        return name

    async def get_or_fetch_invoice_detail(
        self, invoice_id: int, fetcher: InvoiceDetailFetcher
    ) -> InvoiceDetail:
        cached = self._invoice_details.get(invoice_id)
        if cached is not None:
            LOGGER.debug("Using cached details for invoice %s", invoice_id)
            return cached

        try:
            detail = await fetcher(invoice_id)
        except Exception as exc:
            LOGGER.warning("Could not fetch details for invoice %s: %s", invoice_id, exc)
            return InvoiceDetail.empty()

        self._invoice_details[invoice_id] = detail
        return detail
