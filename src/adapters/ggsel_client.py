"""GGSel seller API adapter.

Implements the core MarketplaceClient port over plain HTTP. Status mapping
lives here; the core only sees models and MarketplaceError.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional

from adapters.ggsel_mapper import (
    chats_from_body,
    invoice_detail_from_content,
    messages_from_body,
    sales_snapshot_from_body,
)
from core.errors import MarketplaceApiError, MarketplaceError
from core.models import Chat, InvoiceDetail, Message, SalesSnapshot

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://seller.ggsel.net/api_sellers/api"


def request_json(
    method: str,
    url: str,
    headers: Optional[dict[str, str]] = None,
    payload: Optional[dict] = None,
    timeout: float = 10.0,
) -> Any:
    """Blocking JSON request; raises MarketplaceError on any failure.

    status is None on the raised error for transport failures and the HTTP
    status code otherwise.
    """

    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    request = urllib.request.Request(url, data=data, method=method)
    request.add_header("Accept", "application/json")
    if data is not None:
        request.add_header("Content-Type", "application/json")
    for name, value in (headers or {}).items():
        request.add_header(name, value)

    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = response.read()
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace")
        raise MarketplaceError(f"HTTP {e.code}: {body}", status=e.code) from e
    except (urllib.error.URLError, TimeoutError, ConnectionError) as e:
        raise MarketplaceError(f"Request to {urllib.parse.urlsplit(url).path} failed: {e}") from e

    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise MarketplaceError(f"Invalid JSON from {urllib.parse.urlsplit(url).path}") from e


class GGSelClient:
    """MarketplaceClient backed by the GGSel seller API."""

    def __init__(
        self,
        seller_id: str,
        base_url: str = DEFAULT_BASE_URL,
        locale: str = "en",
        timeout: float = 10.0,
    ) -> None:
        self._seller_id = seller_id
        self._base_url = base_url.rstrip("/")
        self._locale = locale
        self._timeout = timeout

    def _url(self, path: str, **params: Any) -> str:
        return f"{self._base_url}/{path}?{urllib.parse.urlencode(params)}"

    async def _get(self, url: str, headers: Optional[dict[str, str]] = None) -> Any:
        # urllib is blocking; a worker thread keeps the event loop responsive.
        return await asyncio.to_thread(request_json, "GET", url, headers, None, self._timeout)

    async def fetch_sales(self, token: str, limit: int) -> SalesSnapshot:
        url = self._url("seller-last-sales", token=token, seller_id=self._seller_id, top=limit)
        body = await self._get(url, {"locale": self._locale})
        return sales_snapshot_from_body(body)

    async def fetch_chats(self, token: str, limit: int) -> list[Chat]:
        # Only chats with unread messages are listed.
        url = self._url("debates/v2/chats", token=token, filter_new=1, pagesize=limit)
        body = await self._get(url, {"Authorization": f"Bearer {token}"})
        LOGGER.debug("Chats received")
        return chats_from_body(body)

    async def fetch_messages(self, token: str, chat_id_i: int, limit: int) -> list[Message]:
        url = self._url("debates/v2", token=token, id_i=chat_id_i, count=limit, newer=1)
        body = await self._get(url)
        LOGGER.debug("Messages received for chat %s", chat_id_i)
        return messages_from_body(body)

    async def fetch_product_name(self, token: str, product_id: int) -> str:
        body = await self._get(self._url(f"products/{product_id}/data", token=token))
        self._raise_for_retval(body)
        product = body.get("product") or {}
        name = product.get("name")
        if not name:
            raise MarketplaceError(f"Product {product_id} has no name")
        return name

    async def fetch_invoice_detail(self, token: str, invoice_id: int) -> InvoiceDetail:
        LOGGER.debug("Fetching purchase info for invoice %s", invoice_id)
        body = await self._get(self._url(f"purchase/info/{invoice_id}", token=token), {"locale": self._locale})
        self._raise_for_retval(body)
        return invoice_detail_from_content(body.get("content"))

    @staticmethod
    def _raise_for_retval(body: Any) -> None:
        if not isinstance(body, dict):
            raise MarketplaceError(f"Unexpected response body: {body!r}")
        if body.get("retval") != 0:
            raise MarketplaceApiError(body.get("retval"), body.get("retdesc"))
