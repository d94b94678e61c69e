"""Relay RSS news items to a companion device, one small message at a time."""

__version__ = "1.0.0"
