"""Miow CLI UI - Rich terminal interface."""

from miow.ui.console import MiowConsole
from miow.ui.keyboard import KeyboardMonitor

__all__ = ["MiowConsole", "KeyboardMonitor"]
