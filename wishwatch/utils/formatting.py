"""Telegram message formatting utilities."""
from html import escape
from typing import Sequence
from wishwatch.providers.models import CatalogItem


# Items listed in one notification; the rest are summarised
MAX_LISTED_ITEMS = 5


def pluralize_items(count: int) -> str:
    """Russian plural form of "item" for a count."""
    if count % 10 == 1 and count % 100 != 11:
        return "товар"
    if 2 <= count % 10 <= 4 and not 12 <= count % 100 <= 14:
        return "товара"
    return "товаров"


def format_new_items_message(
    streamer_name: str,
    streamer_url: str,
    items: Sequence[CatalogItem],
    is_direct: bool = True
) -> str:
    """
    Format a "new wishlist items" notification.

    Args:
        streamer_name: Display name of the streamer
        streamer_url: Link to the streamer's wishlist
        items: New items, in catalog order
        is_direct: Direct message (True) or group post (False)

    Returns:
        HTML formatted message string
    """
    count = len(items)
    name = escape(streamer_name)

    if is_direct:
        header = f"🎁 <b>У стримера {name} появились новые товары!</b>"
    else:
        header = f"🎁 <b>{name}: новые товары в вишлисте!</b>"

    lines = [header, "", f"📦 Добавлено {count} {pluralize_items(count)}:", ""]

    for index, item in enumerate(items[:MAX_LISTED_ITEMS], start=1):
        lines.append(f"{index}. {escape(item.name or 'Без названия')}")
        if item.price:
            lines.append(f"   💰 {escape(item.price)}")
        lines.append("")

    remainder = count - MAX_LISTED_ITEMS
    if remainder > 0:
        lines.append(f"... и ещё {remainder} {pluralize_items(remainder)}")
        lines.append("")

    lines.append(f'🔗 <a href="{escape(streamer_url, quote=True)}">Смотреть все на Fetta</a>')

    return "\n".join(lines)
