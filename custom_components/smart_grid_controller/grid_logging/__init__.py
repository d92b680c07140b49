"""Unified logging module for Smart Grid Controller."""

from .unified_logger import GridLogger, get_logger

__all__ = ["GridLogger", "get_logger"]
