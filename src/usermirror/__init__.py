"""Offline-first mirror of a remote user directory."""

__version__ = "0.1.0"
