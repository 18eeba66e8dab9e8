"""Brokerage transaction compliance and retrieval service."""

__version__ = "0.1.0"
