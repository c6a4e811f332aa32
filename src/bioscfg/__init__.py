"""BIOS configuration worker for fleet servers."""

__version__ = "0.1.0"
