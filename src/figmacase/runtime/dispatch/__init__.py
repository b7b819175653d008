"""Tool dispatch."""

from .dispatcher import Dispatcher, MemoryProbe

__all__ = ["Dispatcher", "MemoryProbe"]
