"""Observability helpers.

This module contains:
- Structured logging configuration
"""

from src.observability.logging import configure_logging

__all__ = ["configure_logging"]
