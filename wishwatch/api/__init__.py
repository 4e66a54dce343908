"""Monitoring API package."""
