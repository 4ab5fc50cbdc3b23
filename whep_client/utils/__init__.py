"""Utility helpers for the WHEP client."""

from .logging import configure_logging

__all__ = ["configure_logging"]
