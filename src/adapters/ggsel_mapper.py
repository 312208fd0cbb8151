"""GGSel-to-core mapping adapter.

This keeps the seller API's JSON field names out of the core pipeline.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from core.models import Attachment, Chat, InvoiceDetail, Message, Product, Sale, SalesSnapshot


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an API timestamp; naive values are taken as UTC."""

    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def product_from_payload(payload: dict) -> Product:
    product_id = _optional_int(payload.get("id")) or 0
    return Product(
        id=product_id,
        name=payload.get("name") or None,
        price_usd=_optional_str(payload.get("price_usd")),
        price_eur=_optional_str(payload.get("price_eur")),
        price_rub=_optional_str(payload.get("price_rub")),
        price_uah=_optional_str(payload.get("price_uah")),
    )


def sale_from_payload(payload: dict) -> Sale:
    return Sale(
        invoice_id=int(payload["invoice_id"]),
        product=product_from_payload(payload.get("product") or {}),
        date=parse_timestamp(payload.get("date")),
    )


def sales_snapshot_from_body(body: Any) -> SalesSnapshot:
    """Map the last-sales body; a non-zero retval is a soft error."""

    if not isinstance(body, dict):
        return SalesSnapshot(ok=False, description=f"Unexpected sales body: {body!r}")
    if body.get("retval") != 0:
        return SalesSnapshot(ok=False, description=body.get("retdesc") or f"retval {body.get('retval')}")
    sales = tuple(sale_from_payload(item) for item in body.get("sales") or [])
    return SalesSnapshot(ok=True, sales=sales)


def chat_from_payload(payload: dict) -> Chat:
    return Chat(
        chat_id_i=int(payload["id_i"]),
        chat_id=_optional_int(payload.get("id")),
        product_id=_optional_int(payload.get("product")),
        email=_optional_str(payload.get("email")),
        message_count=_optional_int(payload.get("cnt_msg")) or 0,
        unread_count=_optional_int(payload.get("cnt_new")) or 0,
        last_activity=parse_timestamp(payload.get("last_message")),
    )


def chats_from_body(body: Any) -> list[Chat]:
    if not isinstance(body, dict):
        return []
    return [chat_from_payload(item) for item in body.get("items") or []]


def message_from_payload(payload: dict) -> Message:
    attachment = None
    if payload.get("is_file"):
        attachment = Attachment(
            filename=payload.get("filename") or "file",
            url=_optional_str(payload.get("url")),
            is_image=bool(payload.get("is_img")),
        )
    return Message(
        id=int(payload["id"]),
        body=payload.get("message") or "",
        sender_is_buyer=bool(payload.get("buyer")),
        written_at=parse_timestamp(payload.get("date_written")),
        seen_at=parse_timestamp(payload.get("date_seen")),
        attachment=attachment,
    )


def messages_from_body(body: Any) -> list[Message]:
    # The endpoint answers with a bare list; tolerate a wrapped one too.
    if isinstance(body, dict):
        body = body.get("items") or []
    if not isinstance(body, list):
        return []
    return [message_from_payload(item) for item in body]


def invoice_detail_from_content(content: Any) -> InvoiceDetail:
    if not isinstance(content, dict):
        return InvoiceDetail.empty()
    buyer_info = content.get("buyer_info") or {}
    return InvoiceDetail(
        buyer_email=_optional_str(buyer_info.get("email")),
        amount=_optional_str(content.get("amount")),
        currency=_optional_str(content.get("currency_type")),
    )
