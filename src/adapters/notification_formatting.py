"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from core.enrichment import fallback_product_name
from core.events import MonitorEvent, NewChat, NewMessages, NewOrder

ORDER_URL = "https://seller.ggsel.net/orders/{invoice_id}"
DIVIDER = "━━━━━━━━━━━━━━━━━━━━━"


def format_timestamp(value: Optional[datetime], timezone: str) -> str:
    """Render a timestamp in the configured timezone, or N/A."""

    if value is None:
        return "N/A"
    return value.astimezone(ZoneInfo(timezone)).strftime("%d.%m.%Y %H:%M:%S")


def _utc_offset_label(value: Optional[datetime], timezone: str) -> str:
    if value is None:
        return timezone
    offset = value.astimezone(ZoneInfo(timezone)).strftime("%z")
    if not offset:
        return timezone
    hours = int(offset[:3])
    return f"GMT{hours:+d}" if offset[3:] == "00" else f"GMT{offset[:3]}:{offset[3:]}"


def _escape_md(value: str) -> str:
    for ch in r"*[`":
        value = value.replace(ch, f"\\{ch}")
    return value


def _lines_for_event(
    event: MonitorEvent,
    timezone: str,
    bold: Callable[[str], str],
    italic: Callable[[str], str],
    link: Callable[[str, str], str],
    escape: Callable[[str], str],
) -> list[str]:
    if isinstance(event, NewOrder):
        sale = event.sale
        product = sale.product
        product_name = product.name or fallback_product_name(product.id)
        lines = [
            f"🎉 {bold('NEW ORDER RECEIVED!')} 🛒",
            "",
            f"🆔 {bold('Invoice ID:')} {sale.invoice_id}",
            f"🔗 {bold('Order Link:')} {link(ORDER_URL.format(invoice_id=sale.invoice_id), 'Open Order')}",
            f"📦 {bold('Product:')} {escape(product_name)}",
        ]
        if sale.buyer_email:
            lines.append(f"📧 {bold('Buyer Email:')} {escape(sale.buyer_email)}")
        lines.append("")
        if sale.formatted_amount:
            lines.append(f"💰 {bold('Order Amount:')} {escape(sale.formatted_amount)}")
        else:
            lines.append(f"💰 {bold('Prices:')}")
            for label, value in (
                ("💵 USD: $", product.price_usd),
                ("💶 EUR: €", product.price_eur),
                ("💴 RUB: ₽", product.price_rub),
                ("💷 UAH: ₴", product.price_uah),
            ):
                if value:
                    lines.append(f"   {label}{escape(value)}")
        lines.extend(
            [
                "",
                f"📅 {bold('Date:')} {format_timestamp(sale.date, timezone)} "
                f"({_utc_offset_label(sale.date, timezone)})",
            ]
        )
        return lines

    if isinstance(event, NewChat):
        chat = event.chat
        return [
            f"💬 {bold('NEW CHAT CREATED')}",
            "",
            f"🆔 {bold('Order Number:')} {chat.chat_id_i}",
            f"📦 {bold('Product:')} {escape(event.product_name)}",
            f"📧 {bold('Customer:')} {escape(chat.email or 'N/A')}",
            "",
            f"🕐 {bold('Last Activity:')} {format_timestamp(chat.last_activity, timezone)} "
            f"({_utc_offset_label(chat.last_activity, timezone)})",
        ]

    if isinstance(event, NewMessages):
        chat = event.chat
        lines = [
            f"📨 {bold('NEW MESSAGE(S) RECEIVED!')}",
            "",
            f"🆔 {bold('Order Number:')} {chat.chat_id_i}",
            f"📦 {bold('Product:')} {escape(event.product_name)}",
            f"📧 {bold('Customer:')} {escape(chat.email or 'N/A')}",
        ]
        if event.messages:
            lines.extend(["", DIVIDER, f"📝 {bold('MESSAGE CONTENT:')}"])
            for message in event.messages:
                sender = "👤" if message.sender_is_buyer else "🏢"
                lines.append(f"{sender} {italic(escape(message.body))}")
                if message.attachment is not None:
                    lines.append(f"📎 Attachment: {escape(message.attachment.filename)}")
                    if message.attachment.url:
                        lines.append(f"🔗 {escape(message.attachment.url)}")
        return lines

    raise ValueError(f"Unsupported event: {event!r}")


def _format_html(event: MonitorEvent, timezone: str) -> str:
    """Create the HTML body used by the Bot API adapter."""

    def link(url: str, label: str) -> str:
        return f"<a href=\"{html.escape(url)}\">{html.escape(label)}</a>"

    lines = _lines_for_event(
        event,
        timezone,
        bold=lambda text: f"<b>{text}</b>",
        italic=lambda text: f"<i>\"{text}\"</i>",
        link=link,
        escape=html.escape,
    )
    return "\n".join(lines)


def _format_markdown(event: MonitorEvent, timezone: str) -> str:
    """Create the Markdown body used by Saved Messages."""

    lines = _lines_for_event(
        event,
        timezone,
        bold=lambda text: f"**{text}**",
        italic=lambda text: f"\"{text}\"",
        link=lambda url, label: f"{label}: {url}",
        escape=_escape_md,
    )
    return "\n".join(lines)


def format_notification(event: MonitorEvent, timezone: str, mode: str) -> str:
    """Return the notification formatted for the requested mode."""

    if mode == "markdown":
        return _format_markdown(event, timezone)
    if mode == "html":
        return _format_html(event, timezone)
    raise ValueError(f"Unsupported notification format: {mode}")


def format_test_message(started_at: datetime, timezone: str) -> str:
    lines = [
        "🤖 <b>GGSel Monitor Connected!</b>",
        "",
        "✅ Your Telegram notifications are working!",
        "📱 You will receive alerts for:",
        "   • New orders 🛒",
        "   • New chats 💬",
        "   • New messages 📨",
        "",
        f"🕐 Started: {format_timestamp(started_at, timezone)}",
    ]
    return "\n".join(lines)
