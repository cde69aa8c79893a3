"""Tiered long-term memory for conversational and narrative applications."""

__version__ = "0.1.0"
