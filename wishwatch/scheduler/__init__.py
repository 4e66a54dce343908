"""Scheduler package: lock, queue and polling loop."""
