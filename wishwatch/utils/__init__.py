"""Utility helpers."""
from wishwatch.utils.formatting import format_new_items_message
from wishwatch.utils.time import is_within_active_hours

__all__ = ["format_new_items_message", "is_within_active_hours"]
