"""Wishwatch: wishlist change notifications for tracked streamers."""

__version__ = "1.0.0"
