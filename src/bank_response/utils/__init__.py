"""Shared helpers: the timestamped console logger used by every stage."""

from .logger import get_logger

__all__ = ["get_logger"]
